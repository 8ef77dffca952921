"""
Debt and DebtPayment models.

A debt moves ACTIVE -> PAID when its remaining amount reaches zero, or
ACTIVE -> CANCELLED on request. Both end states are terminal.
"""
from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Float, Integer, DateTime, Date, Text, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from .user import Base


class DebtType(str, Enum):
    # User owes money to someone
    I_OWE = "i_owe"
    # Someone owes money to the user
    OWED_TO_ME = "owed_to_me"


class DebtStatus(str, Enum):
    ACTIVE = "active"
    PAID = "paid"
    CANCELLED = "cancelled"


class Debt(Base):
    """
    Debts table - money owed between the user and a named counterparty.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Canonical owner id
        type: i_owe | owed_to_me
        person_name: Counterparty name
        original_amount: Amount at creation (> 0)
        remaining_amount: Outstanding amount, 0 <= remaining <= original
        currency: ISO-like currency code
        status: active | paid | cancelled
        due_date: Optional due date
        related_transaction_id: Transaction created at origination, if any
        version: Optimistic concurrency counter, bumped on every UPDATE

    Indexes:
        - (user_id, status): live active-debts count and summary queries
    """

    __tablename__ = "debts"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
        comment="Unique debt identifier",
    )
    user_id = Column(String(36), index=True, nullable=False, comment="Owner (canonical user id)")
    type = Column(String(20), nullable=False, comment="i_owe | owed_to_me")
    person_name = Column(String(255), nullable=False, comment="Counterparty name")
    original_amount = Column(Float, nullable=False, comment="Amount at creation")
    remaining_amount = Column(Float, nullable=False, comment="Outstanding amount")
    currency = Column(String(10), nullable=False, default="UZS")
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=DebtStatus.ACTIVE.value)
    due_date = Column(Date, nullable=True)
    related_transaction_id = Column(
        String(36), nullable=True, comment="Linked transaction created at origination"
    )
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    payments = relationship(
        "DebtPayment",
        back_populates="debt",
        cascade="all, delete-orphan",
        order_by="DebtPayment.paid_at.desc()",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_debts_user_status", "user_id", "status"),
        CheckConstraint("original_amount > 0", name="ck_debts_original_positive"),
        CheckConstraint(
            "remaining_amount >= 0 AND remaining_amount <= original_amount",
            name="ck_debts_remaining_bounds",
        ),
    )


class DebtPayment(Base):
    """
    Debt payments - one row per payment applied to a debt.
    """

    __tablename__ = "debt_payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    debt_id = Column(
        String(36),
        ForeignKey("debts.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    amount = Column(Float, nullable=False)
    note = Column(Text, nullable=True)
    paid_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    debt = relationship("Debt", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_debt_payments_amount_positive"),
    )
