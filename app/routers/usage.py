"""
Usage endpoints. Voice and text parsing flows report their consumption here.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import ValidationError
from app.core.limiter import limiter
from app.middleware.auth import CurrentUser, get_current_user
from app.schemas.subscription import CheckLimitRequest, CheckLimitResponse, UsageRecordOut
from app.services.limit_policy import LimitType
from app.services.usage_accounting_service import UsageAccountingService

router = APIRouter(prefix="/usage", tags=["Usage"], dependencies=[Depends(get_current_user)])


def get_accounting(db: Session = Depends(get_db)) -> UsageAccountingService:
    return UsageAccountingService(db)


def _reported_counter(limit_type: LimitType) -> LimitType:
    # The active-debts counter is derived from debt records only
    if limit_type == LimitType.DEBTS:
        raise ValidationError("Active debts are counted from debt records and cannot be reported")
    return limit_type


@router.get("/", response_model=UsageRecordOut)
@limiter.limit("60/minute")
def get_current_usage(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    accounting: UsageAccountingService = Depends(get_accounting),
):
    return accounting.get_current_record(user.id)


@router.post("/check", response_model=CheckLimitResponse)
@limiter.limit("120/minute")
def check_usage(
    request: Request,
    body: CheckLimitRequest,
    user: CurrentUser = Depends(get_current_user),
    accounting: UsageAccountingService = Depends(get_accounting),
):
    return accounting.check_limit(user.id, body.limit_type)


@router.post("/{limit_type}/increment", response_model=UsageRecordOut)
@limiter.limit("120/minute")
def increment_usage(
    request: Request,
    limit_type: LimitType,
    user: CurrentUser = Depends(get_current_user),
    accounting: UsageAccountingService = Depends(get_accounting),
):
    return accounting.increment_usage(user.id, _reported_counter(limit_type))


@router.post("/{limit_type}/decrement", response_model=UsageRecordOut)
@limiter.limit("120/minute")
def decrement_usage(
    request: Request,
    limit_type: LimitType,
    user: CurrentUser = Depends(get_current_user),
    accounting: UsageAccountingService = Depends(get_accounting),
):
    return accounting.decrement_usage(user.id, _reported_counter(limit_type))
