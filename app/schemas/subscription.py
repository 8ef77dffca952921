"""
Schemas for subscription and usage endpoints.
"""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.limit_policy import LimitType


class LimitUsage(BaseModel):
    used: int
    limit: Optional[int] = Field(None, description="null = unlimited")
    remaining: Optional[int] = Field(None, description="null = unlimited")


class SubscriptionStatusOut(BaseModel):
    user_id: str
    status: str
    is_premium: bool
    is_trial_active: bool
    trial_ends_at: Optional[datetime]
    premium_ends_at: Optional[datetime]
    trial_days_left: Optional[int]
    premium_days_left: Optional[int]
    period_start: datetime
    period_end: datetime
    limits: Dict[str, LimitUsage]


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    status: str
    trial_ends_at: Optional[datetime]
    premium_ends_at: Optional[datetime]
    granted_by: Optional[str]
    grant_note: Optional[str]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]


class CheckLimitRequest(BaseModel):
    """Body for POST /subscription/check-limit and POST /usage/check"""
    limit_type: LimitType


class CheckLimitResponse(BaseModel):
    allowed: bool
    limit_type: LimitType
    is_premium: bool
    current_usage: int
    limit: Optional[int]
    remaining: Optional[int]


class CancelSubscriptionRequest(BaseModel):
    reason: Optional[str] = None


class GrantPremiumRequest(BaseModel):
    """Body for POST /subscription/grant (admin)"""
    user_identifier: str = Field(..., description="Canonical or external user id")
    is_lifetime: bool = False
    duration_days: Optional[int] = Field(None, gt=0, description="Defaults to the monthly duration")
    grant_note: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "user_identifier": "123456789",
                "is_lifetime": False,
                "duration_days": 30,
                "grant_note": "Beta tester",
            }
        }


class ExpireSubscriptionsResponse(BaseModel):
    processed: int


class UsageRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    period_start: datetime
    period_end: datetime
    transactions_count: int
    voice_inputs_count: int
    active_debts_count: int
