"""
Performance model with seat inventory tracking.

Key design decisions:
- `available_tickets` is denormalized (avoids COUNT over tickets on every read)
  and is only ever changed by the reservation service
- `is_sold_out` is stored so listings can filter on it; it always equals
  `available_tickets <= 0` after a commit
- `version` column enables optimistic locking for concurrent reservations
- Ticket types are rows, not an embedded list, so per-category counters can be
  decremented with a guarded UPDATE
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Numeric,
    ForeignKey,
    Index,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin


class Performance(Base, TimestampMixin):
    __tablename__ = "performances"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    total_capacity = Column(Integer, nullable=False)
    available_tickets = Column(Integer, nullable=False)
    is_sold_out = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_cancelled = Column(Boolean, nullable=False, default=False)
    notes = Column(String(1000), nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    ticket_types = relationship(
        "TicketType",
        order_by="TicketType.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("available_tickets >= 0", name="check_available_tickets_non_negative"),
        CheckConstraint("total_capacity >= 0", name="check_total_capacity_non_negative"),
        CheckConstraint("available_tickets <= total_capacity", name="check_available_lte_capacity"),
        Index("ix_performances_event_starts", "event_id", "starts_at"),
        Index("ix_performances_starts_at", "starts_at"),
        Index("ix_performances_sold_out", "is_sold_out"),
    )

    @property
    def sold_tickets(self) -> int:
        return self.total_capacity - self.available_tickets

    @property
    def percentage_sold(self) -> int:
        if self.total_capacity == 0:
            return 0
        return round(self.sold_tickets / self.total_capacity * 100)

    def ticket_type(self, name: str):
        for ticket_type in self.ticket_types:
            if ticket_type.name == name:
                return ticket_type
        return None

    def __repr__(self) -> str:
        return (
            f"<Performance(id={self.id}, event={self.event_id}, "
            f"available={self.available_tickets}/{self.total_capacity})>"
        )


class TicketType(Base):
    __tablename__ = "ticket_types"

    id = Column(Integer, primary_key=True)
    performance_id = Column(
        Integer, ForeignKey("performances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(50), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    description = Column(String(500), nullable=True)
    available_count = Column(Integer, nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("performance_id", "name", name="uq_ticket_type_name"),
        CheckConstraint("price >= 0", name="check_ticket_type_price_non_negative"),
        CheckConstraint("available_count >= 0", name="check_ticket_type_count_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<TicketType(name={self.name}, price={self.price}, available={self.available_count})>"
