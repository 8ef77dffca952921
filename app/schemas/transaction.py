import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models import TransactionType


class TransactionIn(BaseModel):
    """Body for POST /transactions/. Debt links cannot be set from outside."""
    amount: float = Field(..., gt=0, description="Transaction amount (> 0)")
    type: TransactionType = Field(..., description="income | expense")
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    date: Optional[dt.date] = Field(None, description="Defaults to today")

    class Config:
        json_schema_extra = {
            "example": {
                "amount": 120000,
                "type": "expense",
                "category": "groceries",
                "description": "Weekly shopping",
                "date": "2026-10-19",
            }
        }


class TransactionCreate(TransactionIn):
    """Internal creation payload; the debt flow sets the back-reference."""
    is_debt_related: bool = False
    related_debt_id: Optional[str] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    amount: float
    type: str
    category: str
    description: Optional[str]
    date: dt.date
    is_debt_related: bool
    related_debt_id: Optional[str]
    created_at: dt.datetime
