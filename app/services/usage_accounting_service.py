"""
UsageAccountingService: usage counters per user and billing period.

Usage:
    accounting = UsageAccountingService(db)
    result = accounting.check_limit(user_id, LimitType.DEBTS)
    if not result.allowed:
        raise DebtLimitExceededError(result.limit, result.current_usage)

Counters are side effects of primary operations. Callers commit their own
work first and wrap these calls so that an accounting failure never fails
the primary operation (see ``DebtService.sync_active_debts``).
"""
from datetime import datetime
import logging
from typing import Optional

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Subscription, UsageLimit
from app.services.limit_policy import (
    COUNTER_FIELDS,
    FreeTierLimits,
    LimitType,
    PolicyResult,
    evaluate,
    month_period,
)

logger = logging.getLogger(__name__)


class UsageAccountingService:

    def __init__(self, db: Session, limits: Optional[FreeTierLimits] = None):
        self.db = db
        self.limits = limits or FreeTierLimits.from_settings()

    def get_current_record(self, user_id: str, now: Optional[datetime] = None) -> UsageLimit:
        """
        Returns the usage record whose period contains ``now``, creating it
        with zeroed counters when the user has none for this period.
        Records of earlier periods are left untouched.
        """
        now = now or datetime.utcnow()
        period_start, period_end = month_period(now)

        record = self._find(user_id, period_start)
        if record:
            return record

        record = UsageLimit(
            user_id=user_id,
            period_start=period_start,
            period_end=period_end,
            transactions_count=0,
            voice_inputs_count=0,
            active_debts_count=0,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            # Created concurrently by another request for the same period
            self.db.rollback()
            record = self._find(user_id, period_start)
            if record is None:
                raise
            return record

        self.db.refresh(record)
        logger.info(f"Usage period {period_start:%Y-%m} opened for user {user_id}")
        return record

    def check_limit(
        self, user_id: str, limit_type: LimitType, now: Optional[datetime] = None
    ) -> PolicyResult:
        now = now or datetime.utcnow()
        record = self.get_current_record(user_id, now)
        subscription = (
            self.db.query(Subscription).filter(Subscription.user_id == user_id).first()
        )
        return evaluate(subscription, record, limit_type, limits=self.limits, now=now)

    def increment_usage(
        self, user_id: str, limit_type: LimitType, now: Optional[datetime] = None
    ) -> UsageLimit:
        record = self.get_current_record(user_id, now)
        column = getattr(UsageLimit, COUNTER_FIELDS[LimitType(limit_type)])

        # Single UPDATE so concurrent increments are not lost
        self.db.query(UsageLimit).filter(UsageLimit.id == record.id).update(
            {column: column + 1}, synchronize_session=False
        )
        self.db.commit()
        self.db.refresh(record)
        return record

    def decrement_usage(
        self, user_id: str, limit_type: LimitType, now: Optional[datetime] = None
    ) -> UsageLimit:
        record = self.get_current_record(user_id, now)
        column = getattr(UsageLimit, COUNTER_FIELDS[LimitType(limit_type)])

        self.db.query(UsageLimit).filter(UsageLimit.id == record.id).update(
            {column: case((column > 0, column - 1), else_=0)},
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(record)
        return record

    def set_active_debts_count(
        self, user_id: str, count: int, now: Optional[datetime] = None
    ) -> UsageLimit:
        """Absolute set, used to resync the derived active-debts counter."""
        record = self.get_current_record(user_id, now)
        record.active_debts_count = max(0, count)
        self.db.commit()
        self.db.refresh(record)
        return record

    def _find(self, user_id: str, period_start: datetime) -> Optional[UsageLimit]:
        return (
            self.db.query(UsageLimit)
            .filter(
                UsageLimit.user_id == user_id,
                UsageLimit.period_start == period_start,
            )
            .first()
        )
