"""
Tests for ticket lookup, the status state machine, release and check-in.
"""

import json

import pytest
from httpx import AsyncClient

from boxoffice.core.exceptions import PermissionDeniedError, ValidationError
from boxoffice.models import Order, Payment, Performance, Ticket, User
from boxoffice.models.ticket import TicketStatus
from boxoffice.services.reservation_service import reserve_seats
from boxoffice.services.ticket_codes import (
    build_barcode,
    build_qr_payload,
    generate_ticket_number,
    ticket_number_from_barcode,
)
from boxoffice.services.ticket_lifecycle import ensure_transition
from boxoffice.services.ticket_service import release_tickets
from conftest import bearer, load, seat


async def buy(session_factory, customer_id, performance_id, make_payment, details, seats=None):
    payment_id = await make_payment(customer_id)
    async with session_factory() as db:
        reservation = await reserve_seats(
            db, performance_id, payment_id, seats or [seat("ORCH", "A", "1")], customer_id, details
        )
    return reservation.tickets


@pytest.mark.parametrize("current,target", [
    ("reserved", "purchased"),
    ("purchased", "active"),
    ("purchased", "used"),
    ("active", "used"),
    ("active", "refunded"),
    ("reserved", "cancelled"),
])
def test_allowed_transitions(current, target):
    assert ensure_transition(current, target) is TicketStatus(target)


@pytest.mark.parametrize("current,target", [
    ("used", "cancelled"),
    ("cancelled", "purchased"),
    ("refunded", "active"),
    ("active", "purchased"),
    ("purchased", "reserved"),
    ("purchased", "lost"),
])
def test_rejected_transitions(current, target):
    with pytest.raises(ValidationError):
        ensure_transition(current, target)


def test_ticket_numbers_are_unique_and_unambiguous():
    numbers = {generate_ticket_number() for _ in range(500)}
    assert len(numbers) == 500
    for number in numbers:
        assert number.startswith("TKT-")
        assert not set(number[4:]) & set("01IO")


def test_barcode_is_deterministic_and_signed():
    barcode = build_barcode("TKT-ABCDEFGHJK", 1, 2, "ORCH", "A", "1")
    assert barcode == build_barcode("TKT-ABCDEFGHJK", 1, 2, "ORCH", "A", "1")
    assert barcode != build_barcode("TKT-ABCDEFGHJK", 1, 2, "ORCH", "A", "2")
    assert ticket_number_from_barcode(barcode) == "TKT-ABCDEFGHJK"
    assert ticket_number_from_barcode("garbage") is None

    payload = json.loads(build_qr_payload("TKT-ABCDEFGHJK", 1, 2, "Standard", "ORCH", "A", "1"))
    assert payload["ticket"] == "TKT-ABCDEFGHJK"
    assert payload["sig"] == barcode.split(".")[1]


@pytest.mark.asyncio
async def test_list_my_tickets(client: AsyncClient, session_factory, auth_headers, test_user, test_performance, make_payment, customer_details):
    await buy(session_factory, test_user, test_performance, make_payment, customer_details,
              seats=[seat("ORCH", "A", "1"), seat("ORCH", "A", "2")])

    response = await client.get("/api/v1/tickets/", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 2

    filtered = await client.get("/api/v1/tickets/?status=cancelled", headers=auth_headers)
    assert filtered.json()["total"] == 0


@pytest.mark.asyncio
async def test_get_ticket_owner_only(client: AsyncClient, session_factory, auth_headers, test_user, other_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)
    ticket_id = tickets[0].id

    mine = await client.get(f"/api/v1/tickets/{ticket_id}", headers=auth_headers)
    assert mine.status_code == 200
    assert mine.json()["ticket_number"] == tickets[0].ticket_number
    assert mine.json()["row"] == "A"

    theirs = await client.get(f"/api/v1/tickets/{ticket_id}", headers=bearer(other_user))
    assert theirs.status_code == 403


@pytest.mark.asyncio
async def test_update_status_activate(client: AsyncClient, session_factory, organizer_headers, test_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)

    response = await client.patch(
        f"/api/v1/tickets/{tickets[0].id}/status", json={"status": "active"}, headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "active"

    back = await client.patch(
        f"/api/v1/tickets/{tickets[0].id}/status", json={"status": "purchased"}, headers=organizer_headers
    )
    assert back.status_code == 400
    assert back.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_update_status_cancel_releases_seat(client: AsyncClient, session_factory, organizer_headers, test_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)

    response = await client.patch(
        f"/api/v1/tickets/{tickets[0].id}/status", json={"status": "cancelled"}, headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 100


@pytest.mark.asyncio
async def test_update_status_requires_organizer(client: AsyncClient, session_factory, auth_headers, test_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)
    response = await client.patch(
        f"/api/v1/tickets/{tickets[0].id}/status", json={"status": "active"}, headers=auth_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_release_endpoint(client: AsyncClient, session_factory, auth_headers, test_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details,
                        seats=[seat("ORCH", "A", "1"), seat("ORCH", "A", "2")])
    ticket_ids = [t.id for t in tickets]

    response = await client.post(
        "/api/v1/tickets/release", json={"ticket_ids": ticket_ids, "reason": "cancelled"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert [t["status"] for t in response.json()] == ["cancelled", "cancelled"]

    # releasing again changes nothing
    again = await client.post("/api/v1/tickets/release", json={"ticket_ids": ticket_ids}, headers=auth_headers)
    assert again.status_code == 200
    performance = await load(session_factory, Performance, test_performance)
    assert performance.available_tickets == 100


@pytest.mark.asyncio
async def test_release_someone_elses_tickets(client: AsyncClient, session_factory, test_user, other_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)
    response = await client.post(
        "/api/v1/tickets/release", json={"ticket_ids": [tickets[0].id]}, headers=bearer(other_user)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_customer_cannot_refund_own_tickets(client: AsyncClient, session_factory, auth_headers, test_user, test_performance, make_payment, customer_details):
    """A refund must go through the order so the payment is refunded too."""
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)

    response = await client.post(
        "/api/v1/tickets/release", json={"ticket_ids": [tickets[0].id], "reason": "refunded"}, headers=auth_headers
    )
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"

    ticket = await load(session_factory, Ticket, tickets[0].id)
    assert ticket.status == "purchased"
    assert ticket.payment_status == "paid"
    order = await load(session_factory, Order, tickets[0].order_id)
    assert order.status == "confirmed"
    assert (await load(session_factory, Payment, order.payment_id)).status == "completed"
    assert (await load(session_factory, Performance, test_performance)).available_tickets == 99


@pytest.mark.asyncio
async def test_release_tickets_refund_rules(session_factory, test_user, admin, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)
    ticket_ids = [tickets[0].id]

    async with session_factory() as db:
        customer = await db.get(User, test_user)
        with pytest.raises(PermissionDeniedError):
            await release_tickets(db, ticket_ids, "refunded", customer)

    async with session_factory() as db:
        released = await release_tickets(db, ticket_ids, "refunded", await db.get(User, admin))
    assert released[0].status == "refunded"


@pytest.mark.asyncio
async def test_check_in(client: AsyncClient, session_factory, organizer_headers, test_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)
    barcode = tickets[0].barcode_data

    response = await client.post("/api/v1/tickets/check-in", json={"barcode": barcode}, headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "used"
    assert response.json()["checked_in_at"] is not None

    second = await client.post("/api/v1/tickets/check-in", json={"barcode": barcode}, headers=organizer_headers)
    assert second.status_code == 400

    ticket = await load(session_factory, Ticket, tickets[0].id)
    assert ticket.status == "used"


@pytest.mark.asyncio
async def test_other_organizer_cannot_manage_tickets(client: AsyncClient, session_factory, other_organizer, admin_headers, test_user, test_performance, make_payment, customer_details):
    """Organizers only scan and change tickets for their own events."""
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)
    rival = bearer(other_organizer)

    check_in = await client.post("/api/v1/tickets/check-in", json={"barcode": tickets[0].barcode_data}, headers=rival)
    assert check_in.status_code == 403

    status_change = await client.patch(
        f"/api/v1/tickets/{tickets[0].id}/status", json={"status": "cancelled"}, headers=rival
    )
    assert status_change.status_code == 403

    ticket = await load(session_factory, Ticket, tickets[0].id)
    assert ticket.status == "purchased"
    assert ticket.checked_in_at is None
    assert (await load(session_factory, Performance, test_performance)).available_tickets == 99

    # admins manage every event
    admin_scan = await client.post(
        "/api/v1/tickets/check-in", json={"barcode": tickets[0].barcode_data}, headers=admin_headers
    )
    assert admin_scan.status_code == 200


@pytest.mark.asyncio
async def test_check_in_forged_barcode(client: AsyncClient, session_factory, organizer_headers, test_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)
    forged = f"{tickets[0].ticket_number}.0000000000000000"

    response = await client.post("/api/v1/tickets/check-in", json={"barcode": forged}, headers=organizer_headers)
    assert response.status_code == 400

    malformed = await client.post("/api/v1/tickets/check-in", json={"barcode": "hello"}, headers=organizer_headers)
    assert malformed.status_code == 400


@pytest.mark.asyncio
async def test_check_in_cancelled_ticket(client: AsyncClient, session_factory, organizer_headers, auth_headers, test_user, test_performance, make_payment, customer_details):
    tickets = await buy(session_factory, test_user, test_performance, make_payment, customer_details)
    await client.post("/api/v1/tickets/release", json={"ticket_ids": [tickets[0].id]}, headers=auth_headers)

    response = await client.post(
        "/api/v1/tickets/check-in", json={"barcode": tickets[0].barcode_data}, headers=organizer_headers
    )
    assert response.status_code == 400
