"""
Subscription endpoints: status, trial, cancellation and admin grants.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import AppError
from app.core.limiter import limiter
from app.middleware.auth import AdminKeyData, CurrentUser, get_current_user, require_admin
from app.schemas.subscription import (
    CancelSubscriptionRequest,
    CheckLimitRequest,
    CheckLimitResponse,
    ExpireSubscriptionsResponse,
    GrantPremiumRequest,
    SubscriptionOut,
    SubscriptionStatusOut,
)
from app.services.identity_service import IdentityResolver
from app.services.subscription_service import SubscriptionService
from app.services.usage_accounting_service import UsageAccountingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription", tags=["Subscription"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    return SubscriptionService(db, UsageAccountingService(db))


@router.get("/", response_model=SubscriptionStatusOut)
@limiter.limit("60/minute")
def get_status(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.get_status(user.id)


@router.post("/check-limit", response_model=CheckLimitResponse)
@limiter.limit("120/minute")
def check_limit(
    request: Request,
    body: CheckLimitRequest,
    user: CurrentUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.accounting.check_limit(user.id, body.limit_type)


@router.post("/start-trial", response_model=SubscriptionOut, status_code=201)
@limiter.limit("5/minute")
def start_trial(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.start_trial(user.id)


@router.post("/cancel", response_model=SubscriptionOut)
@limiter.limit("5/minute")
def cancel_subscription(
    request: Request,
    body: CancelSubscriptionRequest,
    user: CurrentUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.cancel(user.id, reason=body.reason)


@router.post("/grant", response_model=SubscriptionOut, tags=["Admin"])
@limiter.limit("30/minute")
def grant_premium(
    request: Request,
    body: GrantPremiumRequest,
    admin: AdminKeyData = Depends(require_admin),
    db: Session = Depends(get_db),
    service: SubscriptionService = Depends(get_subscription_service),
):
    try:
        user_id = IdentityResolver(db).resolve(body.user_identifier)
        return service.grant_premium(
            user_id,
            granted_by=admin.name,
            grant_note=body.grant_note,
            is_lifetime=body.is_lifetime,
            duration_days=body.duration_days,
        )
    except AppError:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error granting premium to {body.user_identifier}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error granting premium")


@router.post("/expire", response_model=ExpireSubscriptionsResponse, tags=["Admin"])
@limiter.limit("5/minute")
def expire_subscriptions(
    request: Request,
    admin: AdminKeyData = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    processed = service.expire_subscriptions()
    logger.info(f"Expiry sweep triggered by {admin.name}: {processed} processed")
    return {"processed": processed}
