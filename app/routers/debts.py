"""
Debt endpoints: lifecycle, payments and summary for the authenticated user.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import AppError, ForbiddenError
from app.core.limiter import limiter
from app.middleware.auth import CurrentUser, get_current_user
from app.models import Debt
from app.schemas.debt import (
    DebtBatchCreate,
    DebtBatchResult,
    DebtCreate,
    DebtOut,
    DebtPayFullRequest,
    DebtPaymentOut,
    DebtPayRequest,
    DebtSummaryOut,
    DebtUpdate,
    DebtWithPaymentsOut,
)
from app.services.debt_service import DebtService
from app.services.identity_service import IdentityResolver
from app.services.transaction_service import TransactionService
from app.services.usage_accounting_service import UsageAccountingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/debts", tags=["Debts"], dependencies=[Depends(get_current_user)])


def get_debt_service(db: Session = Depends(get_db)) -> DebtService:
    accounting = UsageAccountingService(db)
    return DebtService(
        db,
        transactions=TransactionService(db, accounting),
        accounting=accounting,
        identity=IdentityResolver(db),
    )


def _owned_debt(service: DebtService, debt_id: str, user: CurrentUser) -> Debt:
    debt = service.get_debt(debt_id)
    if debt.user_id != user.id:
        raise ForbiddenError("Access denied to this debt")
    return debt


def _internal_error(db: Session, action: str, e: Exception) -> HTTPException:
    db.rollback()
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}")


@router.post("/", response_model=DebtOut, status_code=201)
@limiter.limit("30/minute")
def create_debt(
    request: Request,
    body: DebtCreate,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    try:
        return service.create_debt(
            user.id,
            debt_type=body.type,
            person_name=body.person_name,
            amount=body.amount,
            currency=body.currency,
            description=body.description,
            due_date=body.due_date,
            money_transferred=body.money_transferred,
        )
    except AppError:
        raise
    except Exception as e:
        raise _internal_error(service.db, "creating debt", e)


@router.post("/batch", response_model=DebtBatchResult, status_code=201)
@limiter.limit("10/minute")
def create_debts_batch(
    request: Request,
    body: DebtBatchCreate,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    try:
        return service.create_debts_batch(user.id, body.items)
    except AppError:
        raise
    except Exception as e:
        raise _internal_error(service.db, "creating debts", e)


@router.get("/", response_model=List[DebtOut])
@limiter.limit("60/minute")
def list_debts(
    request: Request,
    status: Optional[str] = Query(None, description="active | paid | cancelled"),
    debt_type: Optional[str] = Query(None, alias="type", description="i_owe | owed_to_me"),
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    return service.get_debts(user.id, status=status, debt_type=debt_type)


@router.get("/summary", response_model=DebtSummaryOut)
@limiter.limit("60/minute")
def get_summary(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    return service.get_summary(user.id)


@router.get("/{debt_id}", response_model=DebtWithPaymentsOut)
@limiter.limit("60/minute")
def get_debt(
    request: Request,
    debt_id: str,
    with_payments: bool = Query(True),
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    _owned_debt(service, debt_id, user)
    if not with_payments:
        return DebtOut.model_validate(service.get_debt(debt_id)).model_dump()
    return service.get_debt_with_payments(debt_id)


@router.put("/{debt_id}", response_model=DebtOut)
@limiter.limit("30/minute")
def update_debt(
    request: Request,
    debt_id: str,
    body: DebtUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    _owned_debt(service, debt_id, user)
    try:
        return service.update_debt(
            debt_id,
            person_name=body.person_name,
            description=body.description,
            due_date=body.due_date,
        )
    except AppError:
        raise
    except Exception as e:
        raise _internal_error(service.db, "updating debt", e)


@router.delete("/{debt_id}", status_code=204)
@limiter.limit("30/minute")
def delete_debt(
    request: Request,
    debt_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    _owned_debt(service, debt_id, user)
    try:
        service.delete_debt(debt_id)
    except AppError:
        raise
    except Exception as e:
        raise _internal_error(service.db, "deleting debt", e)


@router.post("/{debt_id}/cancel", response_model=DebtOut)
@limiter.limit("30/minute")
def cancel_debt(
    request: Request,
    debt_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    _owned_debt(service, debt_id, user)
    try:
        return service.cancel_debt(debt_id)
    except AppError:
        raise
    except Exception as e:
        raise _internal_error(service.db, "cancelling debt", e)


@router.post("/{debt_id}/pay", response_model=DebtPaymentOut, status_code=201)
@limiter.limit("30/minute")
def pay_debt(
    request: Request,
    debt_id: str,
    body: DebtPayRequest,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    _owned_debt(service, debt_id, user)
    try:
        return service.pay_debt(
            debt_id,
            body.amount,
            note=body.note,
            create_linked_transaction=body.create_transaction,
        )
    except AppError:
        raise
    except Exception as e:
        raise _internal_error(service.db, "paying debt", e)


@router.post("/{debt_id}/pay-full", response_model=DebtPaymentOut, status_code=201)
@limiter.limit("30/minute")
def pay_full(
    request: Request,
    debt_id: str,
    body: Optional[DebtPayFullRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    _owned_debt(service, debt_id, user)
    body = body or DebtPayFullRequest()
    try:
        return service.pay_full(
            debt_id, note=body.note, create_linked_transaction=body.create_transaction
        )
    except AppError:
        raise
    except Exception as e:
        raise _internal_error(service.db, "paying debt", e)


@router.delete("/payments/{payment_id}", response_model=DebtOut)
@limiter.limit("30/minute")
def delete_payment(
    request: Request,
    payment_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: DebtService = Depends(get_debt_service),
):
    payment = service.get_payment(payment_id)
    _owned_debt(service, payment.debt_id, user)
    try:
        debt = service.delete_payment(payment_id)
    except AppError:
        raise
    except Exception as e:
        raise _internal_error(service.db, "deleting payment", e)

    # The debt may have been reopened
    service.sync_active_debts(debt.user_id)
    return debt
