"""
Performance scheduling and inventory setup.

Seat counters are set once here when the performance is created. After that
only the reservation service moves available_tickets and the ticket type
counters; the update path below can change the schedule and notes but never
the inventory.
"""

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import NotFoundError, ValidationError
from boxoffice.core.logging import get_logger
from boxoffice.models.performance import Performance, TicketType
from boxoffice.models.ticket import Ticket
from boxoffice.models.user import User
from boxoffice.schemas.performance import PerformanceCreate, PerformanceUpdate
from boxoffice.services.cache_service import invalidate_performance_cache
from boxoffice.services.event_service import ensure_can_manage, get_event
from boxoffice.services.venue_service import get_venue

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def create_performance(
    db: AsyncSession, event_id: int, data: PerformanceCreate, user: User
) -> Performance:
    """Schedule a performance with its ticket categories."""
    event = await get_event(db, event_id)
    ensure_can_manage(event, user)

    if _as_utc(data.starts_at) <= datetime.now(timezone.utc):
        raise ValidationError("Performance must start in the future")

    names = [tt.name for tt in data.ticket_types]
    if len(set(names)) != len(names):
        raise ValidationError("Ticket type names must be unique within a performance")

    allocated = sum(tt.available_count for tt in data.ticket_types)
    if allocated > data.total_capacity:
        raise ValidationError(
            f"Ticket types allocate {allocated} tickets but capacity is {data.total_capacity}"
        )

    if event.venue_id is not None:
        venue = await get_venue(db, event.venue_id)
        if data.total_capacity > venue.seated_capacity:
            raise ValidationError(
                f"Capacity {data.total_capacity} exceeds the {venue.seated_capacity} seats at {venue.name}"
            )

    performance = Performance(
        event_id=event.id,
        starts_at=data.starts_at,
        ends_at=data.ends_at,
        total_capacity=data.total_capacity,
        available_tickets=allocated,
        is_sold_out=allocated == 0,
        notes=data.notes,
        ticket_types=[
            TicketType(
                name=tt.name,
                price=tt.price,
                description=tt.description,
                available_count=tt.available_count,
                position=position,
            )
            for position, tt in enumerate(data.ticket_types)
        ],
    )
    db.add(performance)
    await db.flush()
    await db.refresh(performance)

    logger.info(
        "performance_created",
        performance_id=performance.id,
        event_id=event.id,
        capacity=performance.total_capacity,
        available=performance.available_tickets,
    )
    await invalidate_performance_cache(event.id)
    return performance


async def get_performance(db: AsyncSession, performance_id: int) -> Performance:
    """Get a performance with current counters."""
    result = await db.execute(
        select(Performance)
        .where(Performance.id == performance_id)
        .execution_options(populate_existing=True)
    )
    performance = result.scalar_one_or_none()
    if performance is None:
        raise NotFoundError("Performance", performance_id)
    return performance


async def list_performances_for_event(
    db: AsyncSession, event_id: int, active_only: bool = True
) -> list[Performance]:
    await get_event(db, event_id)

    query = select(Performance).where(Performance.event_id == event_id)
    if active_only:
        query = query.where(Performance.is_active.is_(True), Performance.is_cancelled.is_(False))

    result = await db.execute(
        query.order_by(Performance.starts_at.asc()).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _ticket_count(db: AsyncSession, performance_id: int) -> int:
    return await db.scalar(
        select(func.count()).select_from(Ticket).where(Ticket.performance_id == performance_id)
    )


async def _get_managed(db: AsyncSession, performance_id: int, user: User) -> Performance:
    performance = await get_performance(db, performance_id)
    event = await get_event(db, performance.event_id)
    ensure_can_manage(event, user)
    return performance


async def update_performance(
    db: AsyncSession, performance_id: int, data: PerformanceUpdate, user: User
) -> Performance:
    """
    Change schedule, notes or visibility.
    Once tickets exist the schedule is fixed; only notes and is_active change.
    """
    performance = await _get_managed(db, performance_id, user)
    changes = data.model_dump(exclude_unset=True)

    if {"starts_at", "ends_at"} & changes.keys():
        if await _ticket_count(db, performance.id):
            raise ValidationError("Cannot reschedule a performance that already has tickets")
        starts_at = changes.get("starts_at", performance.starts_at)
        ends_at = changes.get("ends_at", performance.ends_at)
        if _as_utc(ends_at) <= _as_utc(starts_at):
            raise ValidationError("ends_at must be after starts_at")
        if _as_utc(starts_at) <= datetime.now(timezone.utc):
            raise ValidationError("Performance must start in the future")

    for field, value in changes.items():
        setattr(performance, field, value)
    await db.flush()
    await db.refresh(performance)

    logger.info("performance_updated", performance_id=performance.id, fields=sorted(changes))
    await invalidate_performance_cache(performance.event_id)
    return performance


async def cancel_performance(db: AsyncSession, performance_id: int, user: User) -> Performance:
    """
    Stop sales for a performance. Existing tickets are left for the organizer
    to refund through their orders.
    """
    performance = await _get_managed(db, performance_id, user)
    performance.is_cancelled = True
    performance.is_active = False
    await db.flush()
    await db.refresh(performance)

    logger.info("performance_cancelled", performance_id=performance.id)
    await invalidate_performance_cache(performance.event_id)
    return performance


async def delete_performance(db: AsyncSession, performance_id: int, user: User) -> bool:
    """
    Delete a performance that has no tickets, otherwise deactivate it.
    Returns True when the row was removed.
    """
    performance = await _get_managed(db, performance_id, user)
    event_id = performance.event_id

    if await _ticket_count(db, performance.id):
        performance.is_active = False
        await db.flush()
        logger.info("performance_deactivated", performance_id=performance_id)
        deleted = False
    else:
        await db.delete(performance)
        await db.flush()
        logger.info("performance_deleted", performance_id=performance_id)
        deleted = True

    await invalidate_performance_cache(event_id)
    return deleted
