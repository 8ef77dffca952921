from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, Text
from .user import Base


class SubscriptionStatus(str, Enum):
    FREE = "free"
    TRIALING = "trialing"
    PREMIUM = "premium"
    LIFETIME_PREMIUM = "lifetime_premium"
    CANCELLED = "cancelled"


class Subscription(Base):
    """
    Subscription state. At most one row per user, never deleted.

    ``status`` is a single field, so trialing and premium cannot coexist.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), unique=True, index=True, nullable=False)

    status = Column(
        String(20), default=SubscriptionStatus.FREE.value, nullable=False
    )                                                          # free|trialing|premium|lifetime_premium|cancelled
    trial_ends_at = Column(DateTime, nullable=True)
    premium_ends_at = Column(
        DateTime, nullable=True,
        comment="End of paid/gifted access (None = unlimited for lifetime)"
    )

    # Admin metadata
    granted_by = Column(String(100), nullable=True)
    grant_note = Column(Text, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
