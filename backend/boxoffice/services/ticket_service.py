"""
Ticket queries, status changes and door check-in.
"""

import hmac

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import (
    NotFoundError,
    PerformanceCancelledError,
    PermissionDeniedError,
    ValidationError,
)
from boxoffice.core.logging import get_logger
from boxoffice.db.transaction import run_in_transaction
from boxoffice.models.event import Event
from boxoffice.models.performance import Performance
from boxoffice.models.ticket import RELEASED_STATUSES, Ticket, TicketStatus
from boxoffice.models.user import User
from boxoffice.schemas.order import ReleaseReason
from boxoffice.services.event_service import ensure_can_manage
from boxoffice.services.reservation_service import release_seats
from boxoffice.services.ticket_codes import ticket_number_from_barcode
from boxoffice.services.ticket_lifecycle import apply_transition, ensure_transition, parse_status

logger = get_logger(__name__)


async def _load_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    result = await db.execute(
        select(Ticket).where(Ticket.id == ticket_id).execution_options(populate_existing=True)
    )
    ticket = result.scalar_one_or_none()
    if ticket is None:
        raise NotFoundError("Ticket", ticket_id)
    return ticket


async def get_ticket(db: AsyncSession, ticket_id: int, user: User) -> Ticket:
    ticket = await _load_ticket(db, ticket_id)
    if ticket.customer_id != user.id and not user.is_admin:
        raise PermissionDeniedError("You can only access your own tickets")
    return ticket


async def list_customer_tickets(
    db: AsyncSession,
    customer_id: int,
    page: int = 1,
    page_size: int = 20,
    status: str | None = None,
) -> tuple[list[Ticket], int]:
    query = select(Ticket).where(Ticket.customer_id == customer_id)
    if status:
        query = query.where(Ticket.status == parse_status(status).value)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def _ensure_manages_ticket(db: AsyncSession, ticket: Ticket, user: User) -> None:
    event = await db.get(Event, ticket.event_id)
    ensure_can_manage(event, user)


async def update_ticket_status(db: AsyncSession, ticket_id: int, status: str, user: User) -> Ticket:
    """
    Move a ticket through its lifecycle.
    Cancellation and refund go through release_seats so the seat is freed.
    """
    ticket = await _load_ticket(db, ticket_id)
    await _ensure_manages_ticket(db, ticket, user)
    target = ensure_transition(ticket.status, status)

    if target in RELEASED_STATUSES:
        released = await release_seats(db, [ticket_id], ReleaseReason(target.value))
        return released[0]

    async def _transition() -> Ticket:
        fresh = await _load_ticket(db, ticket_id)
        apply_transition(fresh, target.value)
        return fresh

    ticket = await run_in_transaction(db, _transition, operation="update_ticket_status")
    logger.info("ticket_status_changed", ticket_id=ticket_id, status=target.value)
    return ticket


async def check_in_ticket(db: AsyncSession, barcode: str, user: User) -> Ticket:
    """Validate a scanned barcode and mark the ticket used. Only the event's organizer may scan."""
    ticket_number = ticket_number_from_barcode(barcode)
    if ticket_number is None:
        raise ValidationError("Malformed ticket code")

    async def _check_in() -> Ticket:
        result = await db.execute(
            select(Ticket)
            .where(Ticket.ticket_number == ticket_number)
            .execution_options(populate_existing=True)
        )
        ticket = result.scalar_one_or_none()
        if ticket is None or not ticket.barcode_data:
            raise NotFoundError("Ticket", ticket_number)
        await _ensure_manages_ticket(db, ticket, user)
        if not hmac.compare_digest(ticket.barcode_data, barcode.strip()):
            raise ValidationError("Invalid ticket code")

        status = TicketStatus(ticket.status)
        if status is TicketStatus.USED:
            raise ValidationError("Ticket has already been used")
        if status in RELEASED_STATUSES:
            raise ValidationError(f"Ticket is {status.value}")

        performance = await db.get(Performance, ticket.performance_id)
        if performance.is_cancelled:
            raise PerformanceCancelledError("This performance has been cancelled")

        apply_transition(ticket, TicketStatus.USED.value)
        return ticket

    ticket = await run_in_transaction(db, _check_in, operation="check_in_ticket")
    logger.info("ticket_checked_in", ticket_number=ticket.ticket_number, performance_id=ticket.performance_id)
    return ticket


async def release_tickets(db: AsyncSession, ticket_ids: list[int], reason: str, user: User) -> list[Ticket]:
    """
    Release tickets on behalf of their owner (or an admin).

    Customers can only cancel. A refund has to move money, so it goes through
    the order or the payment, which refund both.
    """
    if not user.is_admin:
        if reason != ReleaseReason.CANCELLED.value:
            raise PermissionDeniedError("Refunds are issued through the order or its payment")
        result = await db.execute(select(Ticket.id, Ticket.customer_id).where(Ticket.id.in_(ticket_ids)))
        foreign = [row.id for row in result.all() if row.customer_id != user.id]
        if foreign:
            raise PermissionDeniedError("You can only release your own tickets")
    return await release_seats(db, ticket_ids, reason)
