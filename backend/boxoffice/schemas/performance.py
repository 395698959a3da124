"""
Pydantic schemas for performances and their ticket types.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class TicketTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)
    available_count: int = Field(..., ge=0, le=100000)


class TicketTypeResponse(BaseModel):
    id: int
    name: str
    price: Decimal
    description: Optional[str]
    available_count: int

    model_config = {"from_attributes": True}


class PerformanceCreate(BaseModel):
    starts_at: datetime
    ends_at: datetime
    total_capacity: int = Field(..., gt=0, le=100000)
    ticket_types: list[TicketTypeCreate] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_schedule(self):
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class PerformanceUpdate(BaseModel):
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class PerformanceResponse(BaseModel):
    id: int
    event_id: int
    starts_at: datetime
    ends_at: datetime
    total_capacity: int
    available_tickets: int
    sold_tickets: int
    percentage_sold: int
    is_sold_out: bool
    is_active: bool
    is_cancelled: bool
    notes: Optional[str]
    ticket_types: list[TicketTypeResponse]

    model_config = {"from_attributes": True}


class PerformanceListResponse(BaseModel):
    performances: list[PerformanceResponse]
    total: int
    cached: bool = False
