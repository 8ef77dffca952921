"""
Subscription lifecycle: trial, premium grants, cancellation and expiry.

One ``subscriptions`` row per user, mutated in place and never deleted.
"""
from datetime import datetime, timedelta
import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import BusinessLogicError, NotFoundError
from app.models import Subscription, SubscriptionStatus
from app.services.limit_policy import LimitType, evaluate, grants_unlimited
from app.services.usage_accounting_service import UsageAccountingService

logger = logging.getLogger(__name__)


def _days_left(until: Optional[datetime], now: datetime) -> Optional[int]:
    if until is None:
        return None
    seconds = (until - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 86400)


class SubscriptionService:

    def __init__(self, db: Session, accounting: Optional[UsageAccountingService] = None):
        self.db = db
        self.accounting = accounting or UsageAccountingService(db)
        self.settings = get_settings()

    def get_subscription(self, user_id: str) -> Optional[Subscription]:
        return self.db.query(Subscription).filter(Subscription.user_id == user_id).first()

    def get_status(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Subscription state plus used/limit/remaining for every limit type."""
        now = now or datetime.utcnow()
        subscription = self.get_subscription(user_id)
        usage = self.accounting.get_current_record(user_id, now)

        limits = {}
        for limit_type in LimitType:
            result = evaluate(
                subscription, usage, limit_type, limits=self.accounting.limits, now=now
            )
            limits[limit_type.value] = {
                "used": result.current_usage,
                "limit": result.limit,
                "remaining": result.remaining,
            }

        is_trial_active = (
            subscription is not None
            and subscription.status == SubscriptionStatus.TRIALING
            and grants_unlimited(subscription, now)
        )

        return {
            "user_id": user_id,
            "status": subscription.status if subscription else SubscriptionStatus.FREE.value,
            "is_premium": grants_unlimited(subscription, now),
            "is_trial_active": is_trial_active,
            "trial_ends_at": subscription.trial_ends_at if subscription else None,
            "premium_ends_at": subscription.premium_ends_at if subscription else None,
            "trial_days_left": _days_left(subscription.trial_ends_at, now) if subscription else None,
            "premium_days_left": _days_left(subscription.premium_ends_at, now) if subscription else None,
            "period_start": usage.period_start,
            "period_end": usage.period_end,
            "limits": limits,
        }

    def start_trial(self, user_id: str, now: Optional[datetime] = None) -> Subscription:
        """Trials are granted once: any subscription history disqualifies the user."""
        now = now or datetime.utcnow()
        if self.get_subscription(user_id) is not None:
            raise BusinessLogicError("Trial is only available to users without a subscription history")

        subscription = Subscription(
            user_id=user_id,
            status=SubscriptionStatus.TRIALING.value,
            trial_ends_at=now + timedelta(days=self.settings.TRIAL_DURATION_DAYS),
        )
        self.db.add(subscription)
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Trial started for user {user_id} until {subscription.trial_ends_at}")
        return subscription

    def grant_premium(
        self,
        user_id: str,
        granted_by: str,
        grant_note: Optional[str] = None,
        is_lifetime: bool = False,
        duration_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        now = now or datetime.utcnow()
        subscription = self.get_subscription(user_id)
        if subscription is None:
            subscription = Subscription(user_id=user_id)
            self.db.add(subscription)

        if is_lifetime:
            subscription.status = SubscriptionStatus.LIFETIME_PREMIUM.value
            subscription.premium_ends_at = None
        else:
            days = duration_days or self.settings.PREMIUM_DURATION_DAYS
            subscription.status = SubscriptionStatus.PREMIUM.value
            subscription.premium_ends_at = now + timedelta(days=days)

        # Premium replaces any running trial
        subscription.trial_ends_at = None
        subscription.granted_by = granted_by
        subscription.grant_note = grant_note
        subscription.cancelled_at = None
        subscription.cancellation_reason = None

        self.db.commit()
        self.db.refresh(subscription)
        logger.info(
            f"Premium granted to user {user_id} by {granted_by} "
            f"(status={subscription.status}, ends={subscription.premium_ends_at})"
        )
        return subscription

    def cancel(
        self, user_id: str, reason: Optional[str] = None, now: Optional[datetime] = None
    ) -> Subscription:
        now = now or datetime.utcnow()
        subscription = self.get_subscription(user_id)
        if subscription is None or subscription.status in (
            SubscriptionStatus.FREE, SubscriptionStatus.CANCELLED
        ):
            raise NotFoundError("Active subscription not found")

        if subscription.status == SubscriptionStatus.LIFETIME_PREMIUM:
            raise BusinessLogicError("Lifetime subscriptions cannot be cancelled")

        if subscription.status == SubscriptionStatus.TRIALING:
            # Nothing was paid for, access ends now
            subscription.trial_ends_at = now

        subscription.status = SubscriptionStatus.CANCELLED.value
        subscription.cancelled_at = now
        subscription.cancellation_reason = reason
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Subscription cancelled for user {user_id}")
        return subscription

    def expire_subscriptions(self, now: Optional[datetime] = None) -> int:
        """
        Moves trials and premium periods that have ended back to ``free``.
        Returns the number of subscriptions processed.
        """
        now = now or datetime.utcnow()
        candidates = (
            self.db.query(Subscription)
            .filter(
                Subscription.status.in_([
                    SubscriptionStatus.TRIALING.value,
                    SubscriptionStatus.PREMIUM.value,
                    SubscriptionStatus.CANCELLED.value,
                ])
            )
            .all()
        )

        processed = 0
        for subscription in candidates:
            if grants_unlimited(subscription, now):
                continue
            try:
                subscription.status = SubscriptionStatus.FREE.value
                self.db.commit()
                processed += 1
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to expire subscription {subscription.id}: {e}", exc_info=True)

        if processed:
            logger.info(f"Expired {processed} subscriptions")
        return processed
