"""
Pydantic schemas for tickets.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field


class TicketResponse(BaseModel):
    id: int
    ticket_number: str
    event_id: int
    performance_id: int
    order_id: Optional[int]
    customer_id: int
    category: str
    price: Decimal
    section: Optional[str]
    row: Optional[str] = Field(None, validation_alias=AliasChoices("seat_row", "row"))
    seat_number: Optional[str]
    status: str
    payment_status: str
    barcode_data: Optional[str]
    qr_code_data: Optional[str]
    customer_first_name: Optional[str]
    customer_last_name: Optional[str]
    customer_email: Optional[str]
    purchased_at: Optional[datetime]
    checked_in_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketListResponse(BaseModel):
    tickets: list[TicketResponse]
    total: int
    page: int
    page_size: int


class TicketStatusUpdate(BaseModel):
    status: str


class CheckInRequest(BaseModel):
    barcode: str = Field(..., min_length=1, max_length=255)
