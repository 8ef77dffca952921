"""
Schemas for debt and debt payment endpoints.

Business validation (positive amounts, known debt types, non-empty names)
happens in ``DebtService`` so that every caller gets the same errors; the
schemas only shape the payloads.
"""
import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DebtCreate(BaseModel):
    """Body for POST /debts/"""
    type: str = Field(..., description="i_owe | owed_to_me")
    person_name: str = Field(..., description="Counterparty name")
    amount: float = Field(..., description="Debt amount (> 0)")
    currency: Optional[str] = Field(None, description="Defaults to the configured currency")
    description: Optional[str] = None
    due_date: Optional[dt.date] = None
    money_transferred: bool = Field(
        False, description="Money changed hands now: also record a linked transaction"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "type": "i_owe",
                "person_name": "Aziz",
                "amount": 100000,
                "currency": "UZS",
                "description": "Borrowed for rent",
                "due_date": "2026-11-30",
                "money_transferred": True,
            }
        }


class DebtBatchCreate(BaseModel):
    """Body for POST /debts/batch. Items are parsed from free text or voice."""
    items: List[DebtCreate] = Field(..., min_length=1)


class DebtUpdate(BaseModel):
    """Body for PUT /debts/{debt_id}. Status changes go through pay/cancel."""
    person_name: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[dt.date] = None


class DebtPayRequest(BaseModel):
    """Body for POST /debts/{debt_id}/pay"""
    amount: float = Field(..., description="Payment amount (> 0, <= remaining)")
    note: Optional[str] = None
    create_transaction: bool = Field(True, description="Record a linked transaction")


class DebtPayFullRequest(BaseModel):
    """Body for POST /debts/{debt_id}/pay-full"""
    note: Optional[str] = None
    create_transaction: bool = True


class DebtPaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    debt_id: str
    amount: float
    note: Optional[str]
    paid_at: dt.datetime


class DebtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: str
    person_name: str
    original_amount: float
    remaining_amount: float
    currency: str
    description: Optional[str]
    status: str
    due_date: Optional[dt.date]
    related_transaction_id: Optional[str]
    created_at: dt.datetime
    updated_at: dt.datetime


class DebtWithPaymentsOut(DebtOut):
    payments: List[DebtPaymentOut] = []


class DebtSummaryOut(BaseModel):
    total_i_owe: float
    total_owed_to_me: float
    net_balance: float              # positive = others owe the user more
    active_debts_count: int
    i_owe_count: int
    owed_to_me_count: int
    currency: str


class DebtBatchFailure(BaseModel):
    index: int
    error: str


class DebtBatchResult(BaseModel):
    created: List[DebtOut]
    failed: List[DebtBatchFailure]
