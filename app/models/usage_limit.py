from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, CheckConstraint
from .user import Base


class UsageLimit(Base):
    """
    Usage counters per user and calendar-month billing period.

    A new row is created for each period; rows of past periods are kept
    for history.
    """
    __tablename__ = "usage_limits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), index=True, nullable=False)

    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    # Event counters (monthly)
    transactions_count = Column(Integer, default=0, server_default="0", nullable=False)
    voice_inputs_count = Column(Integer, default=0, server_default="0", nullable=False)

    # Derived snapshot: number of ACTIVE debts, resynced from the debts table
    active_debts_count = Column(Integer, default=0, server_default="0", nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "period_start", name="uq_usage_limits_user_period"),
        CheckConstraint("transactions_count >= 0", name="ck_usage_transactions_non_negative"),
        CheckConstraint("voice_inputs_count >= 0", name="ck_usage_voice_non_negative"),
        CheckConstraint("active_debts_count >= 0", name="ck_usage_debts_non_negative"),
    )
