"""
Service for income/expense transactions.

``create`` reports storage failures through ``TransactionResult`` instead of
raising, so that callers creating linked transactions as a side effect can
log the failure and carry on.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, NotFoundError
from app.models import Transaction
from app.schemas.transaction import TransactionCreate
from app.services.limit_policy import LimitType
from app.services.usage_accounting_service import UsageAccountingService

logger = logging.getLogger(__name__)


@dataclass
class TransactionResult:
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None


class TransactionService:

    def __init__(self, db: Session, accounting: Optional[UsageAccountingService] = None):
        self.db = db
        self.accounting = accounting

    def create(
        self, user_id: str, data: TransactionCreate, count_usage: bool = False
    ) -> TransactionResult:
        """
        Persist a transaction.

        With ``count_usage`` the monthly transactions counter is incremented
        afterwards; a counter failure is logged and does not affect the result.
        """
        try:
            transaction = Transaction(
                user_id=user_id,
                amount=data.amount,
                type=data.type.value,
                category=data.category,
                description=data.description,
                date=data.date or date.today(),
                is_debt_related=data.is_debt_related,
                related_debt_id=data.related_debt_id,
            )
            self.db.add(transaction)
            self.db.commit()
            self.db.refresh(transaction)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating transaction for user {user_id}: {e}", exc_info=True)
            return TransactionResult(success=False, error=str(e))

        if count_usage and self.accounting is not None:
            try:
                self.accounting.increment_usage(user_id, LimitType.TRANSACTIONS)
            except Exception as e:
                self.db.rollback()
                logger.warning(f"Failed to increment transactions usage for {user_id}: {e}")

        return TransactionResult(success=True, transaction_id=transaction.id)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def list_for_user(
        self, user_id: str, skip: int = 0, limit: int = 50, debt_id: Optional[str] = None
    ) -> List[Transaction]:
        query = self.db.query(Transaction).filter(Transaction.user_id == user_id)
        if debt_id:
            query = query.filter(Transaction.related_debt_id == debt_id)
        return (
            query.order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def delete(self, transaction_id: str, user_id: str) -> None:
        transaction = self.get(transaction_id)
        if not transaction:
            raise NotFoundError("Transaction not found")
        if transaction.user_id != user_id:
            raise ForbiddenError("Access denied to this transaction")

        # Debt-linked rows were never counted against the monthly limit
        counted = not transaction.is_debt_related

        self.db.delete(transaction)
        self.db.commit()

        if counted and self.accounting is not None:
            try:
                self.accounting.decrement_usage(user_id, LimitType.TRANSACTIONS)
            except Exception as e:
                self.db.rollback()
                logger.warning(f"Failed to decrement transactions usage for {user_id}: {e}")
