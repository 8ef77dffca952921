"""
Debt lifecycle: creation, payments, cancellation and summaries.

States: ACTIVE -> PAID (remaining reaches 0) and ACTIVE -> CANCELLED.
Both end states are terminal.

Primary mutations are committed before any side effect runs. Side effects
(linked transactions, the active-debts counter) are logged and absorbed on
failure; they never roll back or fail the primary mutation.
"""
from datetime import date, datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import get_settings
from app.core.errors import (
    AppError,
    BusinessLogicError,
    DebtLimitExceededError,
    NotFoundError,
    ValidationError,
)
from app.models import Debt, DebtPayment, DebtStatus, DebtType, TransactionType
from app.schemas.debt import DebtCreate
from app.schemas.transaction import TransactionCreate
from app.services.identity_service import IdentityResolver
from app.services.limit_policy import LimitType
from app.services.transaction_service import TransactionService
from app.services.usage_accounting_service import UsageAccountingService

logger = logging.getLogger(__name__)


def _money(value: float) -> float:
    return round(float(value), 2)


class DebtService:

    def __init__(
        self,
        db: Session,
        transactions: TransactionService,
        accounting: Optional[UsageAccountingService] = None,
        identity: Optional[IdentityResolver] = None,
    ):
        self.db = db
        self.transactions = transactions
        self.accounting = accounting
        self.identity = identity
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_debt(
        self,
        user_id: str,
        debt_type: str,
        person_name: str,
        amount: float,
        currency: Optional[str] = None,
        description: Optional[str] = None,
        due_date: Optional[date] = None,
        money_transferred: bool = False,
    ) -> Debt:
        parsed_type = self._validate_new_debt(user_id, debt_type, person_name, amount)
        user_id = self._resolve(user_id)

        if self.accounting is not None:
            self._ensure_debt_capacity(user_id)

        debt = Debt(
            user_id=user_id,
            type=parsed_type.value,
            person_name=person_name.strip(),
            original_amount=_money(amount),
            remaining_amount=_money(amount),
            currency=currency or self.settings.DEFAULT_CURRENCY,
            description=description,
            due_date=due_date,
            status=DebtStatus.ACTIVE.value,
        )
        self.db.add(debt)
        self.db.commit()
        self.db.refresh(debt)
        logger.info(f"Debt {debt.id} created for user {user_id} ({debt.type}, {debt.original_amount})")

        if money_transferred:
            # "I owe" means the money was received now: income. Lending it out is an expense.
            txn_type = TransactionType.INCOME if parsed_type == DebtType.I_OWE else TransactionType.EXPENSE
            default_description = (
                f"Borrowed from: {debt.person_name}"
                if parsed_type == DebtType.I_OWE
                else f"Lent to: {debt.person_name}"
            )
            transaction_id = self._create_linked_transaction(
                debt, debt.original_amount, txn_type, description or default_description
            )
            if transaction_id:
                self._link_origin_transaction(debt, transaction_id)

        self.sync_active_debts(user_id)
        return debt

    def create_debts_batch(self, user_id: str, items: List[DebtCreate]) -> Dict[str, Any]:
        """
        Creates debts one by one. A reached debt ceiling aborts the batch
        with DebtLimitExceededError; any other per-item error is reported in
        ``failed`` and the remaining items are still processed.
        """
        created: List[Debt] = []
        failed: List[Dict[str, Any]] = []

        for index, item in enumerate(items):
            try:
                created.append(self.create_debt(
                    user_id,
                    debt_type=item.type,
                    person_name=item.person_name,
                    amount=item.amount,
                    currency=item.currency,
                    description=item.description,
                    due_date=item.due_date,
                    money_transferred=item.money_transferred,
                ))
            except DebtLimitExceededError:
                raise
            except AppError as e:
                logger.warning(f"Batch item {index} rejected for user {user_id}: {e.message}")
                failed.append({"index": index, "error": e.message})

        return {"created": created, "failed": failed}

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_debts(
        self, user_id: str, status: Optional[str] = None, debt_type: Optional[str] = None
    ) -> List[Debt]:
        query = self.db.query(Debt).filter(Debt.user_id == user_id)
        if status:
            query = query.filter(Debt.status == self._parse_status(status).value)
        if debt_type:
            query = query.filter(Debt.type == self._parse_type(debt_type).value)
        return query.order_by(Debt.created_at.desc()).all()

    def get_debt(self, debt_id: str, for_update: bool = False) -> Debt:
        query = self.db.query(Debt).filter(Debt.id == debt_id)
        if for_update:
            # Refresh rows already in the identity map with the locked values
            query = query.with_for_update().populate_existing()
        debt = query.first()
        if not debt:
            raise NotFoundError("Debt not found")
        return debt

    def get_debt_with_payments(self, debt_id: str) -> Debt:
        debt = (
            self.db.query(Debt)
            .options(selectinload(Debt.payments))
            .filter(Debt.id == debt_id)
            .first()
        )
        if not debt:
            raise NotFoundError("Debt not found")
        return debt

    def get_payment(self, payment_id: str) -> DebtPayment:
        payment = self.db.query(DebtPayment).filter(DebtPayment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    def count_active(self, user_id: str) -> int:
        return (
            self.db.query(func.count(Debt.id))
            .filter(Debt.user_id == user_id, Debt.status == DebtStatus.ACTIVE.value)
            .scalar()
            or 0
        )

    def get_summary(self, user_id: str) -> Dict[str, Any]:
        """Aggregates the user's ACTIVE debts. Recomputed on every call."""
        debts = (
            self.db.query(Debt)
            .filter(Debt.user_id == user_id, Debt.status == DebtStatus.ACTIVE.value)
            .all()
        )

        total_i_owe = 0.0
        total_owed_to_me = 0.0
        i_owe_count = 0
        owed_to_me_count = 0
        for debt in debts:
            if debt.type == DebtType.I_OWE:
                total_i_owe += debt.remaining_amount
                i_owe_count += 1
            else:
                total_owed_to_me += debt.remaining_amount
                owed_to_me_count += 1

        return {
            "total_i_owe": _money(total_i_owe),
            "total_owed_to_me": _money(total_owed_to_me),
            "net_balance": _money(total_owed_to_me - total_i_owe),
            "active_debts_count": len(debts),
            "i_owe_count": i_owe_count,
            "owed_to_me_count": owed_to_me_count,
            "currency": self.settings.DEFAULT_CURRENCY,
        }

    # ------------------------------------------------------------------
    # Update / cancel / delete
    # ------------------------------------------------------------------

    def update_debt(
        self,
        debt_id: str,
        person_name: Optional[str] = None,
        description: Optional[str] = None,
        due_date: Optional[date] = None,
    ) -> Debt:
        debt = self.get_debt(debt_id)

        if person_name is not None:
            if not person_name.strip():
                raise ValidationError("Person name is required")
            debt.person_name = person_name.strip()
        if description is not None:
            debt.description = description
        if due_date is not None:
            debt.due_date = due_date

        self.db.commit()
        self.db.refresh(debt)
        return debt

    def cancel_debt(self, debt_id: str) -> Debt:
        debt = self.get_debt(debt_id, for_update=True)
        if debt.status != DebtStatus.ACTIVE:
            raise BusinessLogicError(f"Cannot cancel a debt with status '{debt.status}'")

        debt.status = DebtStatus.CANCELLED.value
        self.db.commit()
        self.db.refresh(debt)
        logger.info(f"Debt {debt.id} cancelled")

        self.sync_active_debts(debt.user_id)
        return debt

    def delete_debt(self, debt_id: str) -> None:
        debt = self.get_debt(debt_id)
        was_active = debt.status == DebtStatus.ACTIVE
        user_id = debt.user_id

        # Payments go with the debt; linked transactions keep their dangling reference
        self.db.delete(debt)
        self.db.commit()
        logger.info(f"Debt {debt_id} deleted")

        if was_active:
            self.sync_active_debts(user_id)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def pay_debt(
        self,
        debt_id: str,
        amount: float,
        note: Optional[str] = None,
        create_linked_transaction: bool = True,
    ) -> DebtPayment:
        if not debt_id or not debt_id.strip():
            raise ValidationError("Debt ID is required")
        # Validate the stored (rounded) value, not the raw input
        if amount is None or _money(amount) <= 0:
            raise ValidationError("Amount must be greater than 0")
        amount = _money(amount)

        attempts = max(1, self.settings.PAYMENT_RETRY_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            # Re-read on every attempt: validation must see the latest remaining amount
            debt = self.get_debt(debt_id, for_update=True)
            if debt.status != DebtStatus.ACTIVE:
                raise BusinessLogicError("Cannot pay a non-active debt")
            if amount > _money(debt.remaining_amount):
                raise ValidationError(
                    f"Payment amount ({amount}) exceeds remaining debt ({debt.remaining_amount})",
                    {"remaining_amount": debt.remaining_amount},
                )

            payment = DebtPayment(debt_id=debt.id, amount=amount, note=note, paid_at=datetime.utcnow())
            self.db.add(payment)
            debt.remaining_amount = _money(debt.remaining_amount - amount)
            if debt.remaining_amount <= 0:
                debt.remaining_amount = 0.0
                debt.status = DebtStatus.PAID.value

            try:
                self.db.commit()
                break
            except StaleDataError:
                self.db.rollback()
                logger.warning(
                    f"Concurrent update on debt {debt_id}, retrying payment "
                    f"(attempt {attempt}/{attempts})"
                )
        else:
            raise BusinessLogicError("Debt was modified concurrently, please retry")

        self.db.refresh(debt)
        self.db.refresh(payment)
        logger.info(
            f"Payment {payment.id} of {amount} applied to debt {debt.id} "
            f"(remaining={debt.remaining_amount}, status={debt.status})"
        )

        if debt.status == DebtStatus.PAID:
            self.sync_active_debts(debt.user_id)

        if create_linked_transaction:
            # Paying back what I owe is an expense, being repaid is income
            txn_type = TransactionType.EXPENSE if debt.type == DebtType.I_OWE else TransactionType.INCOME
            default_description = (
                f"Repaid debt to: {debt.person_name}"
                if debt.type == DebtType.I_OWE
                else f"Debt repayment from: {debt.person_name}"
            )
            self._create_linked_transaction(debt, amount, txn_type, note or default_description)

        return payment

    def pay_full(
        self, debt_id: str, note: Optional[str] = None, create_linked_transaction: bool = True
    ) -> DebtPayment:
        debt = self.get_debt(debt_id)
        if debt.status != DebtStatus.ACTIVE:
            raise BusinessLogicError("Cannot pay a non-active debt")
        return self.pay_debt(
            debt_id,
            debt.remaining_amount,
            note=note or "Full payment",
            create_linked_transaction=create_linked_transaction,
        )

    def delete_payment(self, payment_id: str) -> Debt:
        """
        Reverts a payment: its amount goes back onto the debt and the debt
        is reopened as ACTIVE, even when it had been PAID.

        The active-debts counter is not resynced here; callers that reopen a
        debt call ``sync_active_debts`` themselves.
        """
        attempts = max(1, self.settings.PAYMENT_RETRY_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            payment = self.get_payment(payment_id)
            debt = self.get_debt(payment.debt_id, for_update=True)
            if debt.status == DebtStatus.CANCELLED:
                raise BusinessLogicError("Cannot modify payments of a cancelled debt")

            restored = _money(payment.amount)
            debt.remaining_amount = min(
                _money(debt.original_amount), _money(debt.remaining_amount + restored)
            )
            debt.status = DebtStatus.ACTIVE.value
            self.db.delete(payment)

            try:
                self.db.commit()
                break
            except StaleDataError:
                self.db.rollback()
                logger.warning(
                    f"Concurrent update on debt {debt.id}, retrying payment deletion "
                    f"(attempt {attempt}/{attempts})"
                )
        else:
            raise BusinessLogicError("Debt was modified concurrently, please retry")

        self.db.refresh(debt)
        logger.info(f"Payment {payment_id} reverted, debt {debt.id} remaining={debt.remaining_amount}")
        return debt

    # ------------------------------------------------------------------
    # Accounting
    # ------------------------------------------------------------------

    def sync_active_debts(self, user_id: str) -> None:
        """Resync the derived active-debts counter from the live count. Never raises."""
        if self.accounting is None:
            return
        try:
            user_id = self._resolve(user_id)
            self.accounting.set_active_debts_count(user_id, self.count_active(user_id))
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating active debts count for {user_id}: {e}", exc_info=True)

    def _ensure_debt_capacity(self, user_id: str) -> None:
        try:
            self.accounting.set_active_debts_count(user_id, self.count_active(user_id))
            result = self.accounting.check_limit(user_id, LimitType.DEBTS)
        except Exception as e:
            # Limit tracking fails open
            self.db.rollback()
            logger.error(f"Debt limit check failed for {user_id}, allowing: {e}", exc_info=True)
            return

        if not result.allowed:
            logger.info(
                f"Debt limit reached for user {user_id} ({result.current_usage}/{result.limit})"
            )
            raise DebtLimitExceededError(result.limit, result.current_usage)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _create_linked_transaction(
        self, debt: Debt, amount: float, txn_type: TransactionType, description: str
    ) -> Optional[str]:
        try:
            result = self.transactions.create(
                debt.user_id,
                TransactionCreate(
                    amount=amount,
                    type=txn_type,
                    category=self.settings.DEBT_TRANSACTION_CATEGORY,
                    description=description,
                    date=date.today(),
                    is_debt_related=True,
                    related_debt_id=debt.id,
                ),
            )
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Failed to create linked transaction for debt {debt.id}: {e}", exc_info=True)
            return None

        if not result.success:
            logger.warning(f"Failed to create linked transaction for debt {debt.id}: {result.error}")
            return None
        return result.transaction_id

    def _link_origin_transaction(self, debt: Debt, transaction_id: str) -> None:
        try:
            debt.related_transaction_id = transaction_id
            self.db.commit()
            self.db.refresh(debt)
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Failed to link transaction {transaction_id} to debt {debt.id}: {e}")

    def _resolve(self, user_id: str) -> str:
        if self.identity is None:
            return user_id
        return self.identity.resolve(user_id)

    def _validate_new_debt(
        self, user_id: str, debt_type: str, person_name: str, amount: float
    ) -> DebtType:
        if not user_id or not str(user_id).strip():
            raise ValidationError("User ID is required")
        if not person_name or not person_name.strip():
            raise ValidationError("Person name is required")
        if amount is None or _money(amount) <= 0:
            raise ValidationError("Amount must be greater than 0")
        return self._parse_type(debt_type)

    @staticmethod
    def _parse_type(value: str) -> DebtType:
        try:
            return DebtType(value)
        except ValueError:
            raise ValidationError(f"Invalid debt type: {value}")

    @staticmethod
    def _parse_status(value: str) -> DebtStatus:
        try:
            return DebtStatus(value)
        except ValueError:
            raise ValidationError(f"Invalid debt status: {value}")
