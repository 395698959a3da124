"""
Pydantic schemas for checkout, orders and seat release.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from boxoffice.schemas.ticket import TicketResponse


class ReleaseReason(str, enum.Enum):
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class SeatRequest(BaseModel):
    """One requested ticket. Leave section, row and seat_number empty for general admission."""

    category: str = Field(..., max_length=50)
    section: Optional[str] = Field(None, min_length=1, max_length=50)
    row: Optional[str] = Field(None, min_length=1, max_length=20)
    seat_number: Optional[str] = Field(None, min_length=1, max_length=20)
    price: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)


class CustomerDetails(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: EmailStr


class OrderCreate(BaseModel):
    payment_id: int
    event_id: Optional[int] = None
    performance_id: int
    tickets: list[SeatRequest] = Field(..., min_length=1, max_length=50)
    customer_details: CustomerDetails


class OrderResponse(BaseModel):
    id: int
    customer_id: int
    event_id: int
    performance_id: int
    payment_id: int
    total_amount: Decimal
    status: str
    created_at: datetime
    tickets: list[TicketResponse]

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int


class OrderStatusUpdate(BaseModel):
    status: ReleaseReason


class ReleaseRequest(BaseModel):
    ticket_ids: list[int] = Field(..., min_length=1, max_length=100)
    reason: ReleaseReason = ReleaseReason.CANCELLED
