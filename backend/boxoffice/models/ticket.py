"""
Ticket model and its lifecycle.

A ticket references its performance (foreign key) and snapshots the category
and price at the time of sale. Tickets are never deleted; released tickets
stay as an audit trail with status cancelled or refunded.

Seat uniqueness is enforced twice: the reservation service checks for live
tickets on the requested seats inside its transaction, and the partial unique
index below rejects a second live ticket for the same seat even if two
transactions pass that check concurrently.
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Numeric,
    ForeignKey,
    Index,
    CheckConstraint,
    text,
)

from boxoffice.db.base import Base, TimestampMixin


class TicketStatus(str, enum.Enum):
    RESERVED = "reserved"
    PURCHASED = "purchased"
    ACTIVE = "active"
    USED = "used"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class TicketPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"
    FAILED = "failed"


RELEASED_STATUSES = frozenset({TicketStatus.CANCELLED, TicketStatus.REFUNDED})
TERMINAL_STATUSES = RELEASED_STATUSES | {TicketStatus.USED}
CLEARED_PAYMENT_STATUSES = frozenset({TicketPaymentStatus.PAID, TicketPaymentStatus.COMPLETED})

ALLOWED_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.RESERVED: frozenset({
        TicketStatus.PURCHASED,
        TicketStatus.ACTIVE,
        TicketStatus.CANCELLED,
        TicketStatus.REFUNDED,
    }),
    TicketStatus.PURCHASED: frozenset({
        TicketStatus.ACTIVE,
        TicketStatus.USED,
        TicketStatus.CANCELLED,
        TicketStatus.REFUNDED,
    }),
    TicketStatus.ACTIVE: frozenset({
        TicketStatus.USED,
        TicketStatus.CANCELLED,
        TicketStatus.REFUNDED,
    }),
    TicketStatus.USED: frozenset(),
    TicketStatus.CANCELLED: frozenset(),
    TicketStatus.REFUNDED: frozenset(),
}

# Only live, seated tickets occupy a seat
LIVE_SEAT_PREDICATE = "status NOT IN ('cancelled', 'refunded') AND seat_number IS NOT NULL"


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    ticket_number = Column(String(32), unique=True, nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    performance_id = Column(Integer, ForeignKey("performances.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    category = Column(String(50), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    section = Column(String(50), nullable=True)
    seat_row = Column(String(20), nullable=True)
    seat_number = Column(String(20), nullable=True)

    status = Column(String(20), nullable=False, default=TicketStatus.RESERVED.value)
    payment_status = Column(String(20), nullable=False, default=TicketPaymentStatus.PENDING.value)

    barcode_data = Column(String(255), nullable=True)
    qr_code_data = Column(String(1000), nullable=True)

    customer_first_name = Column(String(100), nullable=True)
    customer_last_name = Column(String(100), nullable=True)
    customer_email = Column(String(255), nullable=True)

    purchased_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_ticket_price_non_negative"),
        CheckConstraint(
            "status IN ('reserved', 'purchased', 'active', 'used', 'cancelled', 'refunded')",
            name="check_ticket_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'completed', 'refunded', 'cancelled', 'failed')",
            name="check_ticket_payment_status",
        ),
        Index(
            "uq_tickets_live_seat",
            "performance_id",
            "section",
            "seat_row",
            "seat_number",
            unique=True,
            postgresql_where=text(LIVE_SEAT_PREDICATE),
            sqlite_where=text(LIVE_SEAT_PREDICATE),
        ),
        Index("ix_tickets_status", "status"),
    )

    @property
    def is_released(self) -> bool:
        return TicketStatus(self.status) in RELEASED_STATUSES

    @property
    def seat_label(self) -> str | None:
        if self.seat_number is None:
            return None
        return f"{self.section} {self.seat_row}-{self.seat_number}"

    def __repr__(self) -> str:
        return f"<Ticket(number={self.ticket_number}, performance={self.performance_id}, status={self.status})>"
