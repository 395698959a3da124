"""
Tests for seat reservation and release, including concurrency scenarios.

These call the reservation service directly, each call on its own session,
the way concurrent requests would.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from boxoffice.core.exceptions import (
    CapacityExceededError,
    InvalidPaymentError,
    NotFoundError,
    PerformanceCancelledError,
    SeatsUnavailableError,
    SoldOutError,
    TransientStoreError,
    ValidationError,
)
from boxoffice.models import Order, Performance, Ticket
from boxoffice.services import reservation_service
from boxoffice.services.reservation_service import Reservation, release_seats, reserve_seats
from conftest import add_performance, load, seat


async def reserve(session_factory, performance_id, payment_id, seats, customer_id, details, **kw):
    async with session_factory() as db:
        return await reserve_seats(db, performance_id, payment_id, seats, customer_id, details, **kw)


async def release(session_factory, ticket_ids, reason="cancelled"):
    async with session_factory() as db:
        return await release_seats(db, ticket_ids, reason)


async def count_rows(session_factory, model, *criteria) -> int:
    async with session_factory() as db:
        return await db.scalar(select(func.count()).select_from(model).where(*criteria))


@pytest.mark.asyncio
async def test_reserve_seats(session_factory, test_user, test_performance, make_payment, customer_details):
    """Successful reservation creates the order and tickets and decrements inventory."""
    payment_id = await make_payment(test_user)

    reservation = await reserve(
        session_factory, test_performance, payment_id,
        [seat("ORCH", "A", "1"), seat("ORCH", "A", "2")],
        test_user, customer_details,
    )

    assert isinstance(reservation, Reservation)
    assert reservation.order.payment_id == payment_id
    assert reservation.order.total_amount == Decimal("100.00")
    assert len(reservation.tickets) == 2
    for ticket in reservation.tickets:
        assert ticket.status == "purchased"
        assert ticket.payment_status == "paid"
        assert ticket.order_id == reservation.order.id
        assert ticket.price == Decimal("50.00")
        assert ticket.ticket_number.startswith("TKT-")
        assert ticket.barcode_data.startswith(ticket.ticket_number + ".")
        assert ticket.customer_email == "test@example.com"

    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 98
    assert performance.sold_tickets == 2
    assert performance.is_sold_out is False
    assert performance.version == 2
    assert performance.ticket_type("Standard").available_count == 78
    assert performance.ticket_type("VIP").available_count == 20


@pytest.mark.asyncio
async def test_reserve_uses_requested_price(session_factory, test_user, test_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, test_performance, payment_id,
        [seat("BALC", "C", "7", category="VIP", price=Decimal("99.50"))],
        test_user, customer_details,
    )
    assert reservation.tickets[0].price == Decimal("99.50")
    assert reservation.tickets[0].category == "VIP"


@pytest.mark.asyncio
async def test_reserve_general_admission(session_factory, test_user, test_performance, make_payment, customer_details):
    """Tickets without a seat locator are bounded by capacity only."""
    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, test_performance, payment_id,
        [seat(None, None, None), seat(None, None, None), seat(None, None, None)],
        test_user, customer_details,
    )
    assert len(reservation.tickets) == 3
    assert all(t.seat_number is None for t in reservation.tickets)

    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 97


@pytest.mark.asyncio
async def test_seat_already_taken(session_factory, test_user, other_user, test_performance, make_payment, customer_details):
    """A live ticket on the seat rejects the whole request; nothing is written."""
    first = await make_payment(test_user)
    await reserve(session_factory, test_performance, first, [seat("ORCH", "A", "1")], test_user, customer_details)

    second = await make_payment(other_user)
    with pytest.raises(SeatsUnavailableError) as exc_info:
        await reserve(
            session_factory, test_performance, second,
            [seat("ORCH", "A", "1"), seat("ORCH", "A", "3")],
            other_user, customer_details,
        )

    assert exc_info.value.seats == ["ORCH A-1"]
    assert exc_info.value.to_dict()["seats"] == ["ORCH A-1"]
    assert await count_rows(session_factory, Order, Order.payment_id == second) == 0
    assert await count_rows(session_factory, Ticket, Ticket.customer_id == other_user) == 0

    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 99


@pytest.mark.asyncio
async def test_sold_out(session_factory, test_user, other_user, last_seat_performance, make_payment, customer_details):
    """The last seat flips is_sold_out; the next request is rejected."""
    first = await make_payment(test_user)
    await reserve(session_factory, last_seat_performance, first, [seat("ORCH", "A", "1")], test_user, customer_details)

    performance = await load(session_factory, Performance, last_seat_performance)
    assert performance.available_tickets == 0
    assert performance.is_sold_out is True

    second = await make_payment(other_user)
    with pytest.raises(SoldOutError):
        await reserve(session_factory, last_seat_performance, second, [seat("ORCH", "A", "2")], other_user, customer_details)


@pytest.mark.asyncio
async def test_payment_not_completed(session_factory, test_user, test_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user, status="pending")

    with pytest.raises(InvalidPaymentError):
        await reserve(session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details)

    assert await count_rows(session_factory, Ticket) == 0
    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 100
    assert performance.version == 1


@pytest.mark.asyncio
async def test_payment_missing(session_factory, test_user, test_performance, customer_details):
    with pytest.raises(NotFoundError):
        await reserve(session_factory, test_performance, 4242, [seat("ORCH", "A", "1")], test_user, customer_details)


@pytest.mark.asyncio
async def test_payment_reuse_rejected(session_factory, test_user, test_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    await reserve(session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details)

    with pytest.raises(InvalidPaymentError):
        await reserve(session_factory, test_performance, payment_id, [seat("ORCH", "A", "2")], test_user, customer_details)

    assert await count_rows(session_factory, Ticket) == 1


@pytest.mark.asyncio
async def test_payment_of_another_customer(session_factory, test_user, other_user, test_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    with pytest.raises(InvalidPaymentError):
        await reserve(session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")], other_user, customer_details)


@pytest.mark.asyncio
async def test_performance_missing(session_factory, test_user, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    with pytest.raises(NotFoundError):
        await reserve(session_factory, 999, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details)


@pytest.mark.asyncio
async def test_performance_cancelled(session_factory, test_user, test_event, make_payment, customer_details):
    performance_id = await add_performance(
        session_factory, test_event, [("Standard", "50.00", 10)], is_cancelled=True, is_active=False
    )
    payment_id = await make_payment(test_user)
    with pytest.raises(PerformanceCancelledError):
        await reserve(session_factory, performance_id, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details)


@pytest.mark.asyncio
async def test_event_mismatch(session_factory, test_user, test_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    with pytest.raises(ValidationError):
        await reserve(
            session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")],
            test_user, customer_details, event_id=12345,
        )


@pytest.mark.asyncio
async def test_more_than_available(session_factory, test_user, test_event, make_payment, customer_details):
    performance_id = await add_performance(session_factory, test_event, [("Standard", "50.00", 2)])
    payment_id = await make_payment(test_user)
    with pytest.raises(CapacityExceededError):
        await reserve(
            session_factory, performance_id, payment_id,
            [seat("ORCH", "A", str(n)) for n in range(1, 4)],
            test_user, customer_details,
        )


@pytest.mark.asyncio
async def test_category_exhausted(session_factory, test_user, test_event, make_payment, customer_details):
    performance_id = await add_performance(
        session_factory, test_event, [("Standard", "50.00", 10), ("VIP", "120.00", 1)]
    )
    payment_id = await make_payment(test_user)
    with pytest.raises(CapacityExceededError):
        await reserve(
            session_factory, performance_id, payment_id,
            [seat("BALC", "A", "1", category="VIP"), seat("BALC", "A", "2", category="VIP")],
            test_user, customer_details,
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("seats", [
    [],
    [seat("ORCH", "A", "1", category="Backstage")],
    [seat("ORCH", "A", "1"), seat("ORCH", "A", "1")],
    [seat("ORCH", None, "1")],
    [seat("ORCH", "A", "1", price=Decimal("-1"))],
], ids=["empty", "unknown-category", "duplicate-seat", "partial-locator", "negative-price"])
async def test_invalid_request(session_factory, test_user, test_performance, make_payment, customer_details, seats):
    payment_id = await make_payment(test_user)
    with pytest.raises(ValidationError):
        await reserve(session_factory, test_performance, payment_id, seats, test_user, customer_details)

    assert await count_rows(session_factory, Order) == 0


@pytest.mark.asyncio
async def test_reserve_venue_seats(session_factory, test_user, venue_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, venue_performance, payment_id,
        [seat("ORCH", "B", "10"), seat("BALC", "A", "5"), seat(None, None, None)],
        test_user, customer_details,
    )
    assert len(reservation.tickets) == 3

    performance = await load(session_factory, Performance, venue_performance)
    assert performance.available_tickets == 22


@pytest.mark.asyncio
@pytest.mark.parametrize("requested,outside", [
    (seat("STALLS", "A", "1"), "STALLS A-1"),
    (seat("ORCH", "C", "1"), "ORCH C-1"),
    (seat("ORCH", "A", "11"), "ORCH A-11"),
    (seat("BALC", "A", "0"), "BALC A-0"),
    (seat("BALC", "A", "front"), "BALC A-front"),
], ids=["unknown-section", "unknown-row", "past-row-end", "seat-zero", "not-a-number"])
async def test_seat_outside_venue_layout(session_factory, test_user, venue_performance, make_payment, customer_details, requested, outside):
    payment_id = await make_payment(test_user)
    with pytest.raises(ValidationError) as exc_info:
        await reserve(
            session_factory, venue_performance, payment_id,
            [seat("ORCH", "A", "1"), requested], test_user, customer_details,
        )
    assert exc_info.value.details == {"seats": [outside]}

    assert await count_rows(session_factory, Ticket) == 0
    performance = await load(session_factory, Performance, venue_performance)
    assert performance.available_tickets == 25


@pytest.mark.asyncio
async def test_concurrent_same_seat(session_factory, test_user, other_user, test_performance, make_payment, customer_details):
    """Two simultaneous requests for one seat: exactly one wins."""
    first = await make_payment(test_user)
    second = await make_payment(other_user)

    results = await asyncio.gather(
        reserve(session_factory, test_performance, first, [seat("ORCH", "A", "1")], test_user, customer_details),
        reserve(session_factory, test_performance, second, [seat("ORCH", "A", "1")], other_user, customer_details),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, Reservation)]
    losers = [r for r in results if isinstance(r, SeatsUnavailableError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert losers[0].seats == ["ORCH A-1"]

    assert await count_rows(session_factory, Ticket, Ticket.seat_number == "1") == 1
    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 99


@pytest.mark.asyncio
async def test_concurrent_different_seats_sell_out(session_factory, test_user, other_user, test_event, make_payment, customer_details):
    """Two buyers take the last two seats at once: both win and the show sells out."""
    performance_id = await add_performance(session_factory, test_event, [("Standard", "50.00", 2)])
    first = await make_payment(test_user)
    second = await make_payment(other_user)

    results = await asyncio.gather(
        reserve(session_factory, performance_id, first, [seat("ORCH", "A", "1")], test_user, customer_details),
        reserve(session_factory, performance_id, second, [seat("ORCH", "A", "2")], other_user, customer_details),
        return_exceptions=True,
    )

    assert all(isinstance(r, Reservation) for r in results)
    assert sorted(r.tickets[0].seat_label for r in results) == ["ORCH A-1", "ORCH A-2"]

    performance = await load(session_factory, Performance, performance_id)
    assert performance.available_tickets == 0
    assert performance.is_sold_out is True
    assert performance.ticket_type("Standard").available_count == 0

    await release(session_factory, [results[0].tickets[0].id])

    performance = await load(session_factory, Performance, performance_id)
    assert performance.available_tickets == 1
    assert performance.is_sold_out is False
    assert performance.ticket_type("Standard").available_count == 1


@pytest.mark.asyncio
async def test_concurrent_last_seat(session_factory, test_event, make_payment, customer_details, test_user, other_user):
    """Many buyers, one seat: capacity never goes negative."""
    performance_id = await add_performance(session_factory, test_event, [("Standard", "50.00", 1)])
    payments = [await make_payment(test_user) for _ in range(3)] + [await make_payment(other_user) for _ in range(3)]

    results = await asyncio.gather(*[
        reserve(
            session_factory, performance_id, payment_id, [seat(None, None, None)],
            test_user if i < 3 else other_user, customer_details,
        )
        for i, payment_id in enumerate(payments)
    ], return_exceptions=True)

    assert sum(isinstance(r, Reservation) for r in results) == 1
    assert all(
        isinstance(r, (Reservation, SoldOutError, CapacityExceededError)) for r in results
    )

    performance = await load(session_factory, Performance, performance_id)
    assert performance.available_tickets == 0
    assert performance.is_sold_out is True
    assert await count_rows(session_factory, Ticket) == 1


@pytest.mark.asyncio
async def test_version_conflict_is_retried(
    session_factory, test_user, test_performance, make_payment, customer_details, monkeypatch
):
    """A lost optimistic lock rolls back the attempt and tries again."""
    original = reservation_service._apply_performance_delta
    calls = []

    async def conflict_once(db, performance, delta):
        calls.append(delta)
        if len(calls) == 1:
            raise TransientStoreError("Performance was modified by a concurrent transaction")
        return await original(db, performance, delta)

    monkeypatch.setattr(reservation_service, "_apply_performance_delta", conflict_once)

    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details
    )

    assert len(calls) == 2
    assert await count_rows(session_factory, Order) == 1
    assert await count_rows(session_factory, Ticket) == 1
    assert reservation.tickets[0].seat_number == "1"

    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 99
    assert performance.ticket_type("Standard").available_count == 79


@pytest.mark.asyncio
async def test_retries_exhausted(session_factory, test_user, test_performance, make_payment, customer_details, monkeypatch):
    async def always_conflict(db, performance, delta):
        raise TransientStoreError("Performance was modified by a concurrent transaction")

    monkeypatch.setattr(reservation_service, "_apply_performance_delta", always_conflict)

    payment_id = await make_payment(test_user)
    with pytest.raises(TransientStoreError) as exc_info:
        await reserve(session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details)

    assert exc_info.value.status_code == 503
    assert await count_rows(session_factory, Order) == 0
    assert await count_rows(session_factory, Ticket) == 0
    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 100
    assert performance.ticket_type("Standard").available_count == 80


@pytest.mark.asyncio
async def test_release_round_trip(session_factory, test_user, other_user, test_performance, make_payment, customer_details):
    """Reserve then release restores inventory and frees the seat."""
    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, test_performance, payment_id,
        [seat("ORCH", "A", "1"), seat("BALC", "B", "4", category="VIP")],
        test_user, customer_details,
    )

    released = await release(session_factory, [t.id for t in reservation.tickets])
    assert [t.status for t in released] == ["cancelled", "cancelled"]
    assert all(t.payment_status == "paid" for t in released)

    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 100
    assert performance.is_sold_out is False
    assert performance.ticket_type("Standard").available_count == 80
    assert performance.ticket_type("VIP").available_count == 20

    # the seat is free again
    again = await make_payment(other_user)
    rebooked = await reserve(session_factory, test_performance, again, [seat("ORCH", "A", "1")], other_user, customer_details)
    assert rebooked.tickets[0].seat_label == "ORCH A-1"


@pytest.mark.asyncio
async def test_release_is_idempotent(session_factory, test_user, test_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details
    )
    ticket_ids = [t.id for t in reservation.tickets]

    await release(session_factory, ticket_ids)
    second = await release(session_factory, ticket_ids)

    assert second[0].status == "cancelled"
    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 100
    assert performance.ticket_type("Standard").available_count == 80


@pytest.mark.asyncio
async def test_release_sold_out_reopens(session_factory, test_user, last_seat_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, last_seat_performance, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details
    )
    await release(session_factory, [reservation.tickets[0].id])

    performance = await load(session_factory, Performance, last_seat_performance)
    assert performance.available_tickets == 1
    assert performance.is_sold_out is False


@pytest.mark.asyncio
async def test_release_refund(session_factory, test_user, test_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details
    )
    released = await release(session_factory, [reservation.tickets[0].id], reason="refunded")

    assert released[0].status == "refunded"
    assert released[0].payment_status == "refunded"


@pytest.mark.asyncio
async def test_release_used_ticket_rejected(session_factory, test_user, test_performance, make_payment, customer_details):
    payment_id = await make_payment(test_user)
    reservation = await reserve(
        session_factory, test_performance, payment_id, [seat("ORCH", "A", "1")], test_user, customer_details
    )
    ticket_id = reservation.tickets[0].id
    async with session_factory() as db:
        ticket = await db.get(Ticket, ticket_id)
        ticket.status = "used"
        await db.commit()

    with pytest.raises(ValidationError):
        await release(session_factory, [ticket_id])

    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 99


@pytest.mark.asyncio
async def test_release_across_performances(session_factory, test_user, test_event, test_performance, make_payment, customer_details):
    """Tickets from different performances are each returned to their own performance."""
    other_performance = await add_performance(session_factory, test_event, [("Standard", "30.00", 5)])
    first = await reserve(
        session_factory, test_performance, await make_payment(test_user),
        [seat("ORCH", "A", "1")], test_user, customer_details,
    )
    second = await reserve(
        session_factory, other_performance, await make_payment(test_user),
        [seat(None, None, None), seat(None, None, None)], test_user, customer_details,
    )

    await release(session_factory, [first.tickets[0].id] + [t.id for t in second.tickets])

    assert (await load(session_factory, Performance, test_performance)).available_tickets == 100
    assert (await load(session_factory, Performance, other_performance)).available_tickets == 5


@pytest.mark.asyncio
async def test_release_unknown_ticket(session_factory):
    with pytest.raises(NotFoundError):
        await release(session_factory, [12345])


@pytest.mark.asyncio
async def test_release_invalid_reason(session_factory):
    with pytest.raises(ValidationError):
        await release(session_factory, [1], reason="lost")
