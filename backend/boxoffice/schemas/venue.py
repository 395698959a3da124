"""
Pydantic schemas for venues and their seating layout.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

PriceCategoryName = Literal["premium", "standard", "economy"]


class VenueRowCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=20)
    seats: int = Field(..., ge=1)


class VenueSectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    capacity: int = Field(..., ge=1)
    price_category: PriceCategoryName = "standard"
    rows: list[VenueRowCreate] = Field(default_factory=list)


class VenueCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("Canada", min_length=1, max_length=100)
    capacity: int = Field(..., ge=1)
    facilities: list[str] = Field(default_factory=list)
    seating_map_url: Optional[str] = Field(None, max_length=500)
    sections: list[VenueSectionCreate] = Field(default_factory=list)


class VenueUpdate(BaseModel):
    """Partial update. Sending `sections` replaces the whole layout."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    street: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    zip_code: Optional[str] = Field(None, min_length=1, max_length=20)
    country: Optional[str] = Field(None, min_length=1, max_length=100)
    capacity: Optional[int] = Field(None, ge=1)
    facilities: Optional[list[str]] = None
    seating_map_url: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None
    sections: Optional[list[VenueSectionCreate]] = None


class VenueRowResponse(BaseModel):
    name: str
    seats: int

    model_config = {"from_attributes": True}


class VenueSectionResponse(BaseModel):
    id: int
    name: str
    capacity: int
    price_category: str
    rows: list[VenueRowResponse]

    model_config = {"from_attributes": True}


class VenueResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    street: str
    city: str
    state: str
    zip_code: str
    country: str
    capacity: int
    seated_capacity: int
    facilities: list[str]
    seating_map_url: Optional[str]
    is_active: bool
    sections: list[VenueSectionResponse]
    created_at: datetime

    model_config = {"from_attributes": True}


class VenueListResponse(BaseModel):
    venues: list[VenueResponse]
    total: int
    page: int
    page_size: int
