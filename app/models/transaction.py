from datetime import datetime, date
from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, String, Float, Boolean, Date, DateTime, Text, Index
from .user import Base


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Transaction(Base):
    """
    Transactions table - income/expense records.

    Debt-related rows carry a weak back-reference to the debt
    (``related_debt_id``); debts do not enumerate their transactions.
    """
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), index=True, nullable=False)
    amount = Column(Float, nullable=False)
    type = Column(String(10), nullable=False)                 # income | expense
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(Date, default=date.today, nullable=False)

    is_debt_related = Column(Boolean, default=False, nullable=False)
    related_debt_id = Column(String(36), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_transactions_user_date", "user_id", "date"),
    )
