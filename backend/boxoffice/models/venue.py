"""
Venue model with its seating layout.

A venue is split into sections; a section may list its rows, each with a
seat count. Seats are numbered 1..seats within a row. A section without rows
only bounds how many tickets it can hold, so any seat label inside it is
accepted.
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    ForeignKey,
    JSON,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin


class PriceCategory(str, enum.Enum):
    PREMIUM = "premium"
    STANDARD = "standard"
    ECONOMY = "economy"


class Venue(Base, TimestampMixin):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(String(2000), nullable=True)
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    zip_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False, default="Canada")
    capacity = Column(Integer, nullable=False)
    facilities = Column(JSON, nullable=False, default=list)
    seating_map_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    sections = relationship(
        "VenueSection",
        order_by="VenueSection.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="check_venue_capacity_positive"),
    )

    @property
    def seated_capacity(self) -> int:
        """Sum of the section capacities, or the venue capacity if no sections are laid out."""
        if not self.sections:
            return self.capacity
        return sum(section.capacity for section in self.sections)

    def section(self, name: str):
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def __repr__(self) -> str:
        return f"<Venue(id={self.id}, name={self.name}, capacity={self.capacity})>"


class VenueSection(Base):
    __tablename__ = "venue_sections"

    id = Column(Integer, primary_key=True)
    venue_id = Column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    capacity = Column(Integer, nullable=False)
    price_category = Column(String(20), nullable=False, default=PriceCategory.STANDARD.value)
    position = Column(Integer, nullable=False, default=0)

    rows = relationship(
        "VenueRow",
        order_by="VenueRow.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("venue_id", "name", name="uq_venue_section_name"),
        CheckConstraint("capacity >= 1", name="check_section_capacity_positive"),
        CheckConstraint(
            "price_category IN ('premium', 'standard', 'economy')",
            name="check_section_price_category",
        ),
    )

    def has_seat(self, row: str, seat_number: str) -> bool:
        if not self.rows:
            return True
        for venue_row in self.rows:
            if venue_row.name == row:
                return seat_number.isdigit() and 1 <= int(seat_number) <= venue_row.seats
        return False

    def __repr__(self) -> str:
        return f"<VenueSection(name={self.name}, capacity={self.capacity})>"


class VenueRow(Base):
    __tablename__ = "venue_rows"

    id = Column(Integer, primary_key=True)
    section_id = Column(
        Integer, ForeignKey("venue_sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(20), nullable=False)
    seats = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("section_id", "name", name="uq_venue_row_name"),
        CheckConstraint("seats >= 1", name="check_row_seats_positive"),
    )

    def __repr__(self) -> str:
        return f"<VenueRow(name={self.name}, seats={self.seats})>"
