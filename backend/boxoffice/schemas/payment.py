"""
Pydantic schemas for payments.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: str = Field("USD", min_length=3, max_length=3)
    method: Literal["credit_card", "paypal", "bank_transfer", "cash"] = "credit_card"
    card_number: Optional[str] = Field(None, min_length=12, max_length=19, pattern=r"^[0-9]+$")


class PaymentResponse(BaseModel):
    id: int
    customer_id: int
    amount: Decimal
    currency: str
    method: str
    status: str
    card_last4: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
