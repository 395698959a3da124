"""Initial schema: users, venues, events, performances, ticket types, payments, orders, tickets.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LIVE_SEAT_PREDICATE = "status NOT IN ('cancelled', 'refunded') AND seat_number IS NOT NULL"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'customer'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("role IN ('customer', 'organizer', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Venues and their seating layout
    op.create_table(
        "venues",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("street", sa.String(255), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("zip_code", sa.String(20), nullable=False),
        sa.Column("country", sa.String(100), nullable=False, server_default=sa.text("'Canada'")),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("facilities", sa.JSON(), nullable=False),
        sa.Column("seating_map_url", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_venues_name"),
        sa.CheckConstraint("capacity >= 1", name="check_venue_capacity_positive"),
    )
    op.create_index("ix_venues_id", "venues", ["id"])

    op.create_table(
        "venue_sections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("venue_id", sa.Integer(), sa.ForeignKey("venues.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("price_category", sa.String(20), nullable=False, server_default=sa.text("'standard'")),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("venue_id", "name", name="uq_venue_section_name"),
        sa.CheckConstraint("capacity >= 1", name="check_section_capacity_positive"),
        sa.CheckConstraint(
            "price_category IN ('premium', 'standard', 'economy')", name="check_section_price_category"
        ),
    )
    op.create_index("ix_venue_sections_venue_id", "venue_sections", ["venue_id"])

    op.create_table(
        "venue_rows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "section_id", sa.Integer(), sa.ForeignKey("venue_sections.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("name", sa.String(20), nullable=False),
        sa.Column("seats", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("section_id", "name", name="uq_venue_row_name"),
        sa.CheckConstraint("seats >= 1", name="check_row_seats_positive"),
    )
    op.create_index("ix_venue_rows_section_id", "venue_rows", ["section_id"])

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("venue_id", sa.Integer(), sa.ForeignKey("venues.id"), nullable=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("ix_events_venue_id", "events", ["venue_id"])
    # Listing query: WHERE is_active ORDER BY created_at DESC
    op.create_index("ix_events_active_created", "events", ["is_active", "created_at"])

    # Performances table
    op.create_table(
        "performances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_capacity", sa.Integer(), nullable=False),
        sa.Column("available_tickets", sa.Integer(), nullable=False),
        sa.Column("is_sold_out", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        # Last line of defence if the version guard is ever bypassed
        sa.CheckConstraint("available_tickets >= 0", name="check_available_tickets_non_negative"),
        sa.CheckConstraint("total_capacity >= 0", name="check_total_capacity_non_negative"),
        sa.CheckConstraint("available_tickets <= total_capacity", name="check_available_lte_capacity"),
    )
    op.create_index("ix_performances_id", "performances", ["id"])
    op.create_index("ix_performances_event_starts", "performances", ["event_id", "starts_at"])
    op.create_index("ix_performances_starts_at", "performances", ["starts_at"])
    op.create_index("ix_performances_sold_out", "performances", ["is_sold_out"])

    # Ticket categories per performance
    op.create_table(
        "ticket_types",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "performance_id",
            sa.Integer(),
            sa.ForeignKey("performances.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("available_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("performance_id", "name", name="uq_ticket_type_name"),
        sa.CheckConstraint("price >= 0", name="check_ticket_type_price_non_negative"),
        sa.CheckConstraint("available_count >= 0", name="check_ticket_type_count_non_negative"),
    )
    op.create_index("ix_ticket_types_performance_id", "ticket_types", ["performance_id"])

    # Payments table
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("method", sa.String(20), nullable=False, server_default=sa.text("'credit_card'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("card_last4", sa.String(4), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'refunded')",
            name="check_payment_status",
        ),
        sa.CheckConstraint(
            "method IN ('credit_card', 'paypal', 'bank_transfer', 'cash')",
            name="check_payment_method",
        ),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_customer_id", "payments", ["customer_id"])

    # Orders table
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("performance_id", sa.Integer(), sa.ForeignKey("performances.id"), nullable=False),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        *_timestamps(),
        # A payment backs at most one order
        sa.UniqueConstraint("payment_id", name="uq_orders_payment_id"),
        sa.CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
        sa.CheckConstraint("status IN ('confirmed', 'cancelled', 'refunded')", name="check_order_status"),
    )
    op.create_index("ix_orders_id", "orders", ["id"])
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_performance_id", "orders", ["performance_id"])
    op.create_index("ix_orders_customer_created", "orders", ["customer_id", "created_at"])

    # Tickets table
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_number", sa.String(32), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("performance_id", sa.Integer(), sa.ForeignKey("performances.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("section", sa.String(50), nullable=True),
        sa.Column("seat_row", sa.String(20), nullable=True),
        sa.Column("seat_number", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'reserved'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("barcode_data", sa.String(255), nullable=True),
        sa.Column("qr_code_data", sa.String(1000), nullable=True),
        sa.Column("customer_first_name", sa.String(100), nullable=True),
        sa.Column("customer_last_name", sa.String(100), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("ticket_number", name="uq_tickets_ticket_number"),
        sa.CheckConstraint("price >= 0", name="check_ticket_price_non_negative"),
        sa.CheckConstraint(
            "status IN ('reserved', 'purchased', 'active', 'used', 'cancelled', 'refunded')",
            name="check_ticket_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'completed', 'refunded', 'cancelled', 'failed')",
            name="check_ticket_payment_status",
        ),
    )
    op.create_index("ix_tickets_id", "tickets", ["id"])
    op.create_index("ix_tickets_performance_id", "tickets", ["performance_id"])
    op.create_index("ix_tickets_order_id", "tickets", ["order_id"])
    op.create_index("ix_tickets_customer_id", "tickets", ["customer_id"])
    op.create_index("ix_tickets_status", "tickets", ["status"])
    # ONE LIVE TICKET PER SEAT: released tickets stay as history, so the
    # uniqueness has to ignore them. General admission (no seat number) is
    # bounded by capacity only.
    op.create_index(
        "uq_tickets_live_seat",
        "tickets",
        ["performance_id", "section", "seat_row", "seat_number"],
        unique=True,
        postgresql_where=sa.text(LIVE_SEAT_PREDICATE),
        sqlite_where=sa.text(LIVE_SEAT_PREDICATE),
    )


def downgrade() -> None:
    op.drop_table("tickets")
    op.drop_table("orders")
    op.drop_table("payments")
    op.drop_table("ticket_types")
    op.drop_table("performances")
    op.drop_table("events")
    op.drop_table("venue_rows")
    op.drop_table("venue_sections")
    op.drop_table("venues")
    op.drop_table("users")
