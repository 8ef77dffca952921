"""
Income/expense transaction endpoints, guarded by the monthly transactions limit.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import LimitExceededError
from app.core.limiter import limiter
from app.middleware.auth import CurrentUser, get_current_user
from app.schemas.transaction import TransactionCreate, TransactionIn, TransactionOut
from app.services.limit_policy import LimitType
from app.services.transaction_service import TransactionService
from app.services.usage_accounting_service import UsageAccountingService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/transactions",
    tags=["Transactions"],
    dependencies=[Depends(get_current_user)],
)


def get_transaction_service(db: Session = Depends(get_db)) -> TransactionService:
    return TransactionService(db, UsageAccountingService(db))


@router.post("/", response_model=TransactionOut, status_code=201)
@limiter.limit("60/minute")
def create_transaction(
    request: Request,
    body: TransactionIn,
    user: CurrentUser = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        check = service.accounting.check_limit(user.id, LimitType.TRANSACTIONS)
    except Exception as e:
        # Limit tracking fails open
        service.db.rollback()
        logger.error(f"Transactions limit check failed for {user.id}, allowing: {e}", exc_info=True)
        check = None

    if check is not None and not check.allowed:
        raise LimitExceededError(
            LimitType.TRANSACTIONS.value,
            check.limit,
            check.current_usage,
            message=(
                f"Monthly transactions limit reached ({check.current_usage}/{check.limit}). "
                "Upgrade to Premium for unlimited transactions."
            ),
        )

    # Only the debt flow creates debt-linked transactions
    data = TransactionCreate(**body.model_dump())
    result = service.create(user.id, data, count_usage=True)
    if not result.success:
        raise HTTPException(status_code=500, detail="Error creating transaction")
    return service.get(result.transaction_id)


@router.get("/", response_model=List[TransactionOut])
@limiter.limit("60/minute")
def list_transactions(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    debt_id: Optional[str] = Query(None, description="Only transactions linked to this debt"),
    user: CurrentUser = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    return service.list_for_user(user.id, skip=skip, limit=limit, debt_id=debt_id)


@router.delete("/{transaction_id}", status_code=204)
@limiter.limit("30/minute")
def delete_transaction(
    request: Request,
    transaction_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    service.delete(transaction_id, user.id)
