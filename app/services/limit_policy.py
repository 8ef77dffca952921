"""
Limit policy: pure decision logic for free-tier ceilings.

No IO: given a subscription, a usage record and a limit type, decide whether
one more action is allowed. Safe to call any number of times.
"""
import calendar
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from app.core.config import get_settings
from app.models import Subscription, SubscriptionStatus, UsageLimit


class LimitType(str, Enum):
    TRANSACTIONS = "transactions"
    VOICE_INPUTS = "voice_inputs"
    DEBTS = "debts"


# Usage counter column per limit type
COUNTER_FIELDS = {
    LimitType.TRANSACTIONS: "transactions_count",
    LimitType.VOICE_INPUTS: "voice_inputs_count",
    LimitType.DEBTS: "active_debts_count",
}


@dataclass(frozen=True)
class FreeTierLimits:
    transactions: int
    voice_inputs: int
    active_debts: int

    @classmethod
    def from_settings(cls) -> "FreeTierLimits":
        settings = get_settings()
        return cls(
            transactions=settings.FREE_TIER_TRANSACTIONS_LIMIT,
            voice_inputs=settings.FREE_TIER_VOICE_INPUTS_LIMIT,
            active_debts=settings.FREE_TIER_ACTIVE_DEBTS_LIMIT,
        )

    def ceiling(self, limit_type: LimitType) -> int:
        if limit_type == LimitType.TRANSACTIONS:
            return self.transactions
        if limit_type == LimitType.VOICE_INPUTS:
            return self.voice_inputs
        return self.active_debts


@dataclass(frozen=True)
class PolicyResult:
    allowed: bool
    limit_type: LimitType
    current_usage: int
    limit: Optional[int]
    remaining: Optional[int]
    is_premium: bool


def month_period(now: datetime) -> tuple[datetime, datetime]:
    """Calendar-month billing period containing ``now``."""
    month_start = datetime(now.year, now.month, 1)
    last_day = calendar.monthrange(now.year, now.month)[1]
    month_end = datetime(now.year, now.month, last_day, 23, 59, 59)
    return month_start, month_end


def grants_unlimited(subscription: Optional[Subscription], now: datetime) -> bool:
    """Whether the subscription bypasses free-tier ceilings at ``now``."""
    if subscription is None:
        return False

    status = subscription.status
    if status == SubscriptionStatus.LIFETIME_PREMIUM:
        return True
    if status == SubscriptionStatus.TRIALING:
        return subscription.trial_ends_at is None or subscription.trial_ends_at > now
    if status == SubscriptionStatus.PREMIUM:
        return subscription.premium_ends_at is None or subscription.premium_ends_at > now
    if status == SubscriptionStatus.CANCELLED:
        # Access is kept until the end of the already paid period
        return subscription.premium_ends_at is not None and subscription.premium_ends_at > now
    return False


def current_usage(usage: Optional[UsageLimit], limit_type: LimitType) -> int:
    if usage is None:
        return 0
    return getattr(usage, COUNTER_FIELDS[limit_type]) or 0


def evaluate(
    subscription: Optional[Subscription],
    usage: Optional[UsageLimit],
    limit_type: LimitType,
    limits: Optional[FreeTierLimits] = None,
    now: Optional[datetime] = None,
) -> PolicyResult:
    limit_type = LimitType(limit_type)
    limits = limits or FreeTierLimits.from_settings()
    now = now or datetime.utcnow()
    used = current_usage(usage, limit_type)

    if grants_unlimited(subscription, now):
        return PolicyResult(
            allowed=True,
            limit_type=limit_type,
            current_usage=used,
            limit=None,
            remaining=None,
            is_premium=True,
        )

    ceiling = limits.ceiling(limit_type)
    return PolicyResult(
        allowed=used < ceiling,
        limit_type=limit_type,
        current_usage=used,
        limit=ceiling,
        remaining=max(0, ceiling - used),
        is_premium=False,
    )
