"""
Seat inventory reservation.

CONCURRENCY STRATEGY: Transactional check + Optimistic Locking with Retry
=========================================================================

Problem:
  Two customers check out the same seat, or the last seats of a performance,
  at the same time. Both read "free", both write, the seat is sold twice or
  available_tickets goes negative.

Solution:
  Everything that decides and everything that writes happens in one
  transaction per attempt:

  1. Re-read payment and performance inside the transaction, and check the
     requested seats exist in the event's venue layout
  2. Look for live tickets on the requested seats (SeatsUnavailable)
  3. Check capacity against the values read in step 1 (CapacityExceeded)
  4. Insert the order and tickets
  5. UPDATE performances SET available_tickets = :new, is_sold_out = :new <= 0,
            version = version + 1
     WHERE id = :id AND version = :read_version AND available_tickets >= :n
  6. If rows_affected == 0, another transaction changed the performance
     -> roll back and retry

  Safety nets below the application check:
  - Partial unique index on live (performance, section, row, seat_number):
    two transactions that both passed step 2 cannot both insert
  - CHECK constraints keep 0 <= available_tickets <= total_capacity

  This is the only module that writes available_tickets, is_sold_out or a
  ticket type's available_count. Cancellations and refunds from any route
  go through release_seats.

Side effects:
  Notifications and cache invalidation run after commit and can never fail
  or undo a committed reservation.
"""

import time
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import (
    CapacityExceededError,
    InvalidPaymentError,
    NotFoundError,
    PerformanceCancelledError,
    SeatsUnavailableError,
    SoldOutError,
    TicketingError,
    TransientStoreError,
    ValidationError,
)
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import reservation_latency, record_release, record_reservation
from boxoffice.db.base import utcnow
from boxoffice.db.transaction import run_in_transaction
from boxoffice.models.event import Event
from boxoffice.models.order import Order, OrderStatus
from boxoffice.models.payment import Payment, PaymentStatus
from boxoffice.models.performance import Performance, TicketType
from boxoffice.models.ticket import (
    CLEARED_PAYMENT_STATUSES,
    RELEASED_STATUSES,
    Ticket,
    TicketPaymentStatus,
    TicketStatus,
)
from boxoffice.models.venue import Venue
from boxoffice.schemas.order import CustomerDetails, ReleaseReason, SeatRequest
from boxoffice.services.cache_service import invalidate_performance_cache
from boxoffice.services.interfaces.notifier import TicketNotification
from boxoffice.services.notification_service import NotificationDispatcher, get_dispatcher
from boxoffice.services.ticket_codes import build_barcode, build_qr_payload, generate_ticket_number
from boxoffice.services.ticket_lifecycle import apply_transition, ensure_transition

logger = get_logger(__name__)

_RELEASED_VALUES = [status.value for status in RELEASED_STATUSES]


@dataclass
class Reservation:
    order: Order
    tickets: list[Ticket]


def seat_label(section: Optional[str], row: Optional[str], seat_number: Optional[str]) -> str:
    return f"{section} {row}-{seat_number}"


def _validate_request(requested_seats: Sequence[SeatRequest]) -> None:
    if not requested_seats:
        raise ValidationError("At least one seat must be requested")

    seen: set[tuple] = set()
    for seat in requested_seats:
        if not seat.category:
            raise ValidationError("Every requested seat needs a ticket category")
        if seat.price is not None and seat.price < 0:
            raise ValidationError("Ticket price cannot be negative")

        locator = (seat.section, seat.row, seat.seat_number)
        present = [part is not None for part in locator]
        if any(present) and not all(present):
            raise ValidationError("A seat needs section, row and seat number together")
        if all(present):
            if locator in seen:
                raise ValidationError(f"Seat {seat_label(*locator)} requested more than once")
            seen.add(locator)


async def _load_performance(db: AsyncSession, performance_id: int) -> Performance:
    """Read the performance and its ticket types fresh from the current transaction."""
    result = await db.execute(
        select(Performance)
        .where(Performance.id == performance_id)
        .execution_options(populate_existing=True)
    )
    performance = result.scalar_one_or_none()
    if performance is None:
        raise NotFoundError("Performance", performance_id)
    return performance


async def _find_taken_seats(
    db: AsyncSession, performance_id: int, requested_seats: Sequence[SeatRequest]
) -> list[str]:
    seated = [s for s in requested_seats if s.seat_number is not None]
    if not seated:
        return []

    result = await db.execute(
        select(Ticket.section, Ticket.seat_row, Ticket.seat_number).where(
            Ticket.performance_id == performance_id,
            Ticket.status.not_in(_RELEASED_VALUES),
            or_(*[
                and_(
                    Ticket.section == s.section,
                    Ticket.seat_row == s.row,
                    Ticket.seat_number == s.seat_number,
                )
                for s in seated
            ]),
        )
    )
    return sorted(seat_label(*row) for row in result.all())


async def _seats_outside_layout(
    db: AsyncSession, event_id: int, requested_seats: Sequence[SeatRequest]
) -> list[str]:
    """Requested seats the event's venue does not have. Events without a venue accept any seat."""
    seated = [s for s in requested_seats if s.seat_number is not None]
    venue_id = await db.scalar(select(Event.venue_id).where(Event.id == event_id))
    if not seated or venue_id is None:
        return []

    venue = (
        await db.execute(
            select(Venue).where(Venue.id == venue_id).execution_options(populate_existing=True)
        )
    ).scalar_one()
    outside = []
    for s in seated:
        section = venue.section(s.section)
        if section is None or not section.has_seat(s.row, s.seat_number):
            outside.append(seat_label(s.section, s.row, s.seat_number))
    return sorted(outside)


async def _apply_performance_delta(db: AsyncSession, performance: Performance, delta: int) -> None:
    """
    Move available_tickets by delta under the version guard.
    Raises TransientStoreError when another transaction got there first.
    """
    expected_version = performance.version
    new_available = performance.available_tickets + delta

    conditions = [Performance.id == performance.id, Performance.version == expected_version]
    if delta < 0:
        conditions.append(Performance.available_tickets >= -delta)

    result = await db.execute(
        update(Performance)
        .where(*conditions)
        .values(
            available_tickets=new_available,
            is_sold_out=new_available <= 0,
            version=expected_version + 1,
        )
    )
    if result.rowcount == 0:
        raise TransientStoreError("Performance was modified by a concurrent transaction")


async def _reserve_once(
    db: AsyncSession,
    performance_id: int,
    payment_id: int,
    requested_seats: Sequence[SeatRequest],
    customer_id: int,
    customer_details: CustomerDetails,
    event_id: Optional[int],
) -> Reservation:
    payment = (
        await db.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if payment is None:
        raise NotFoundError("Payment", payment_id)
    if payment.status != PaymentStatus.COMPLETED.value:
        raise InvalidPaymentError(f"Payment {payment_id} is {payment.status}, not completed")
    if payment.customer_id != customer_id:
        raise InvalidPaymentError(f"Payment {payment_id} belongs to another customer")
    existing_order = await db.scalar(select(Order.id).where(Order.payment_id == payment_id))
    if existing_order is not None:
        raise InvalidPaymentError(f"Payment {payment_id} was already used for order {existing_order}")

    performance = await _load_performance(db, performance_id)
    if event_id is not None and performance.event_id != event_id:
        raise ValidationError("Performance does not belong to the specified event")
    if performance.is_sold_out:
        raise SoldOutError("This performance is sold out")
    if performance.is_cancelled or not performance.is_active:
        raise PerformanceCancelledError("This performance has been cancelled")

    ticket_types = {tt.name: tt for tt in performance.ticket_types}
    unknown = sorted({s.category for s in requested_seats} - ticket_types.keys())
    if unknown:
        raise ValidationError(f"Unknown ticket category: {', '.join(unknown)}")

    outside = await _seats_outside_layout(db, performance.event_id, requested_seats)
    if outside:
        raise ValidationError(
            f"Seats not in the venue layout: {', '.join(outside)}", details={"seats": outside}
        )

    taken =await _find_taken_seats(db, performance.id, requested_seats)
    if taken:
        raise SeatsUnavailableError(taken)

    requested = len(requested_seats)
    if requested > performance.available_tickets:
        raise CapacityExceededError(
            f"Not enough tickets. Requested: {requested}, Available: {performance.available_tickets}"
        )
    per_category = Counter(s.category for s in requested_seats)
    for name, count in per_category.items():
        if count > ticket_types[name].available_count:
            raise CapacityExceededError(
                f"Not enough {name} tickets. Requested: {count}, "
                f"Available: {ticket_types[name].available_count}"
            )

    order = Order(
        customer_id=customer_id,
        event_id=performance.event_id,
        performance_id=performance.id,
        payment_id=payment.id,
        total_amount=payment.amount,
        status=OrderStatus.CONFIRMED.value,
    )
    purchased_at = utcnow()
    tickets = []
    for seat in requested_seats:
        ticket_type = ticket_types[seat.category]
        ticket_number = generate_ticket_number()
        ticket = Ticket(
            ticket_number=ticket_number,
            event_id=performance.event_id,
            performance_id=performance.id,
            customer_id=customer_id,
            category=ticket_type.name,
            price=seat.price if seat.price is not None else ticket_type.price,
            section=seat.section,
            seat_row=seat.row,
            seat_number=seat.seat_number,
            status=TicketStatus.RESERVED.value,
            payment_status=TicketPaymentStatus.PENDING.value,
            barcode_data=build_barcode(
                ticket_number, performance.event_id, performance.id,
                seat.section, seat.row, seat.seat_number,
            ),
            qr_code_data=build_qr_payload(
                ticket_number, performance.event_id, performance.id, ticket_type.name,
                seat.section, seat.row, seat.seat_number,
            ),
            customer_first_name=customer_details.first_name,
            customer_last_name=customer_details.last_name,
            customer_email=customer_details.email,
            purchased_at=purchased_at,
        )
        # payment already cleared, so the reservation is a purchase
        apply_transition(ticket, TicketStatus.PURCHASED.value)
        ticket.payment_status = TicketPaymentStatus.PAID.value
        order.tickets.append(ticket)
        tickets.append(ticket)

    db.add(order)
    await db.flush()

    for name, count in per_category.items():
        result = await db.execute(
            update(TicketType)
            .where(TicketType.id == ticket_types[name].id, TicketType.available_count >= count)
            .values(available_count=TicketType.available_count - count)
        )
        if result.rowcount == 0:
            raise CapacityExceededError(f"Not enough {name} tickets")

    await _apply_performance_delta(db, performance, -requested)
    return Reservation(order=order, tickets=tickets)


def _notifications(
    tickets: Iterable[Ticket], customer_details: CustomerDetails
) -> list[TicketNotification]:
    name = " ".join(p for p in (customer_details.first_name, customer_details.last_name) if p)
    return [
        TicketNotification(
            ticket_number=t.ticket_number,
            email=customer_details.email,
            customer_name=name or customer_details.email,
            event_id=t.event_id,
            performance_id=t.performance_id,
            category=t.category,
            price=t.price,
            barcode=t.barcode_data,
            seat_label=seat_label(t.section, t.seat_row, t.seat_number) if t.seat_number else None,
        )
        for t in tickets
    ]


async def reserve_seats(
    db: AsyncSession,
    performance_id: int,
    payment_id: int,
    requested_seats: Sequence[SeatRequest],
    customer_id: int,
    customer_details: CustomerDetails,
    *,
    event_id: Optional[int] = None,
    notifier: Optional[NotificationDispatcher] = None,
) -> Reservation:
    """
    Atomically allocate the requested seats against a completed payment.

    Either the order, all its tickets and the counter updates commit together,
    or nothing does. Raises a TicketingError subclass on rejection.
    """
    start = time.perf_counter()
    try:
        _validate_request(requested_seats)
        reservation = await run_in_transaction(
            db,
            lambda: _reserve_once(
                db, performance_id, payment_id, requested_seats,
                customer_id, customer_details, event_id,
            ),
            operation="reserve_seats",
        )
    except TicketingError as e:
        record_reservation(e.code)
        logger.warning(
            "reservation_rejected",
            performance_id=performance_id,
            payment_id=payment_id,
            customer_id=customer_id,
            code=e.code,
            reason=e.message,
        )
        raise
    finally:
        reservation_latency.observe(time.perf_counter() - start)

    record_reservation("success", len(reservation.tickets))
    logger.info(
        "seats_reserved",
        order_id=reservation.order.id,
        performance_id=performance_id,
        customer_id=customer_id,
        tickets=[t.ticket_number for t in reservation.tickets],
    )

    try:
        (notifier or get_dispatcher()).dispatch(_notifications(reservation.tickets, customer_details))
    except Exception as e:
        logger.warning("ticket_notification_dispatch_failed", order_id=reservation.order.id, error=repr(e))

    await invalidate_performance_cache(reservation.order.event_id)
    return reservation


def _release_target(ticket: Ticket, reason: ReleaseReason) -> TicketStatus:
    cleared = TicketPaymentStatus(ticket.payment_status) in CLEARED_PAYMENT_STATUSES
    if reason is ReleaseReason.REFUNDED and cleared:
        return TicketStatus.REFUNDED
    return TicketStatus.CANCELLED


async def _release_once(
    db: AsyncSession, performance_id: int, ticket_ids: list[int], reason: ReleaseReason
) -> int:
    result = await db.execute(
        select(Ticket)
        .where(Ticket.id.in_(ticket_ids))
        .execution_options(populate_existing=True)
    )
    live = [t for t in result.scalars().all() if not t.is_released]
    if not live:
        return 0

    targets = {t.id: ensure_transition(t.status, _release_target(t, reason).value) for t in live}
    performance = await _load_performance(db, performance_id)
    if performance.available_tickets + len(live) > performance.total_capacity:
        raise ValidationError("Releasing these tickets would exceed the performance capacity")

    for ticket in live:
        target = targets[ticket.id]
        apply_transition(ticket, target.value)
        if target is TicketStatus.REFUNDED:
            ticket.payment_status = TicketPaymentStatus.REFUNDED.value
        elif ticket.payment_status == TicketPaymentStatus.PENDING.value:
            ticket.payment_status = TicketPaymentStatus.CANCELLED.value
    await db.flush()

    for name, count in Counter(t.category for t in live).items():
        await db.execute(
            update(TicketType)
            .where(TicketType.performance_id == performance_id, TicketType.name == name)
            .values(available_count=TicketType.available_count + count)
        )

    await _apply_performance_delta(db, performance, len(live))
    return len(live)


async def release_seats(
    db: AsyncSession,
    ticket_ids: Sequence[int],
    reason: ReleaseReason | str,
) -> list[Ticket]:
    """
    Return tickets to inventory (cancellation or refund).

    Tickets are grouped by performance and each group is released in its own
    transaction. Tickets that are already released are left alone, so calling
    this twice never double-increments a performance.
    """
    try:
        reason = ReleaseReason(reason)
    except ValueError:
        raise ValidationError(f"Invalid release reason: {reason}")

    ids = list(dict.fromkeys(ticket_ids))
    if not ids:
        raise ValidationError("At least one ticket must be given")

    rows = (
        await db.execute(select(Ticket.id, Ticket.performance_id, Ticket.event_id).where(Ticket.id.in_(ids)))
    ).all()
    await db.commit()
    located = {row.id: row for row in rows}
    missing = [ticket_id for ticket_id in ids if ticket_id not in located]
    if missing:
        raise NotFoundError("Ticket", missing[0])

    groups: dict[int, list[int]] = defaultdict(list)
    for ticket_id in ids:
        groups[located[ticket_id].performance_id].append(ticket_id)

    for performance_id in sorted(groups):
        group_ids = groups[performance_id]
        released = await run_in_transaction(
            db,
            lambda: _release_once(db, performance_id, group_ids, reason),
            operation="release_seats",
        )
        record_release(reason.value, released)
        logger.info(
            "seats_released",
            performance_id=performance_id,
            reason=reason.value,
            released=released,
            skipped=len(group_ids) - released,
        )

    for event_id in sorted({row.event_id for row in rows}):
        await invalidate_performance_cache(event_id)

    result = await db.execute(
        select(Ticket)
        .where(Ticket.id.in_(ids))
        .order_by(Ticket.id)
        .execution_options(populate_existing=True)
    )
    tickets = list(result.scalars().all())
    await db.commit()
    return tickets
