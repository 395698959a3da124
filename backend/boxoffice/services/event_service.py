"""
Event service handling catalog CRUD operations.
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.models.event import Event
from boxoffice.models.performance import Performance
from boxoffice.models.ticket import Ticket
from boxoffice.models.user import User
from boxoffice.schemas.event import EventCreate, EventUpdate
from boxoffice.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from boxoffice.core.logging import get_logger
from boxoffice.services.cache_service import invalidate_event_cache, invalidate_performance_cache
from boxoffice.services.venue_service import get_bookable_venue

logger = get_logger(__name__)


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: int) -> Event:
    if event_data.venue_id is not None:
        await get_bookable_venue(db, event_data.venue_id)

    event = Event(
        title=event_data.title,
        description=event_data.description,
        category=event_data.category,
        location=event_data.location,
        venue_id=event_data.venue_id,
        is_published=event_data.is_published,
        organizer_id=organizer_id,
    )
    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, title=event.title, organizer_id=organizer_id)
    await invalidate_event_cache()
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID."""
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError("Event", event_id)
    return event


def ensure_can_manage(event: Event, user: User) -> None:
    """Only the event's organizer or an admin may change its schedule."""
    if not user.is_admin and event.organizer_id != user.id:
        raise PermissionDeniedError("You can only manage your own events")


async def _get_managed(db: AsyncSession, event_id: int, user: User) -> Event:
    event = await get_event(db, event_id)
    ensure_can_manage(event, user)
    return event


async def update_event(db: AsyncSession, event_id: int, data: EventUpdate, user: User) -> Event:
    """
    Change catalog details. Moving the event to another venue is refused once
    tickets exist, since their seats belong to the current layout.
    """
    event = await _get_managed(db, event_id, user)
    changes = data.model_dump(exclude_unset=True)

    if "venue_id" in changes and changes["venue_id"] != event.venue_id:
        tickets = await db.scalar(
            select(func.count()).select_from(Ticket).where(Ticket.event_id == event.id)
        )
        if tickets:
            raise ValidationError("Cannot change the venue of an event that already has tickets")
        if changes["venue_id"] is not None:
            await get_bookable_venue(db, changes["venue_id"])

    for field, value in changes.items():
        setattr(event, field, value)
    await db.flush()
    await db.refresh(event)

    logger.info("event_updated", event_id=event.id, fields=sorted(changes))
    await invalidate_event_cache()
    await invalidate_performance_cache(event.id)
    return event


async def delete_event(db: AsyncSession, event_id: int, user: User) -> bool:
    """
    Delete an event with no performances, otherwise deactivate it.
    Returns True when the row was removed.
    """
    event = await _get_managed(db, event_id, user)

    performances = await db.scalar(
        select(func.count()).select_from(Performance).where(Performance.event_id == event.id)
    )
    if performances:
        event.is_active = False
        event.is_published = False
        await db.flush()
        logger.info("event_deactivated", event_id=event_id, performances=performances)
        deleted = False
    else:
        await db.delete(event)
        await db.flush()
        logger.info("event_deleted", event_id=event_id)
        deleted = True

    await invalidate_event_cache()
    await invalidate_performance_cache(event_id)
    return deleted


async def toggle_publish(db: AsyncSession, event_id: int, user: User) -> Event:
    """Flip whether the event shows up in the public catalog."""
    event = await _get_managed(db, event_id, user)
    if not event.is_published and not event.is_active:
        raise ValidationError("Reactivate the event before publishing it")

    event.is_published = not event.is_published
    await db.flush()
    await db.refresh(event)

    logger.info("event_publish_toggled", event_id=event.id, is_published=event.is_published)
    await invalidate_event_cache()
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    published_only: bool = True,
) -> tuple[list[Event], int]:
    """
    List events with pagination, newest first.
    The public catalog only shows events that are both active and published.
    Uses the ix_events_active_created composite index.
    """
    query = select(Event)

    if published_only:
        query = query.where(Event.is_active.is_(True), Event.is_published.is_(True))

    # Get total count
    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.created_at.desc(), Event.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total
