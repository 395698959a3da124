"""
Order model: one checkout backed by one completed payment.

An order is a read-mostly aggregate over its tickets. Capacity lives on the
performance and seat occupancy on the tickets; an order never holds either.
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin


class OrderStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    performance_id = Column(Integer, ForeignKey("performances.id"), nullable=False, index=True)
    # A payment backs at most one order
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, unique=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.CONFIRMED.value)

    tickets = relationship("Ticket", order_by="Ticket.id", lazy="selectin")

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
        CheckConstraint("status IN ('confirmed', 'cancelled', 'refunded')", name="check_order_status"),
        Index("ix_orders_customer_created", "customer_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, customer={self.customer_id}, status={self.status})>"
