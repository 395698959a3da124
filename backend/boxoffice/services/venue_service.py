"""
Venue service: venues and their seating layout.

The layout (sections, rows, seats per row) is what checkout validates seat
requests against. Once any ticket has been sold for an event at a venue the
layout is frozen, so a sold seat can never disappear from under its ticket.
"""

from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import ConflictError, NotFoundError, ValidationError
from boxoffice.core.logging import get_logger
from boxoffice.models.event import Event
from boxoffice.models.ticket import Ticket
from boxoffice.models.venue import Venue, VenueRow, VenueSection
from boxoffice.schemas.venue import VenueCreate, VenueSectionCreate, VenueUpdate

logger = get_logger(__name__)


def _check_layout(sections: Sequence[VenueSectionCreate], capacity: int) -> None:
    names = [section.name for section in sections]
    if len(set(names)) != len(names):
        raise ValidationError("Section names must be unique within a venue")

    for section in sections:
        row_names = [row.name for row in section.rows]
        if len(set(row_names)) != len(row_names):
            raise ValidationError(f"Row names must be unique within section {section.name}")
        seats = sum(row.seats for row in section.rows)
        if seats > section.capacity:
            raise ValidationError(
                f"Section {section.name} lays out {seats} seats but its capacity is {section.capacity}"
            )

    allocated = sum(section.capacity for section in sections)
    if allocated > capacity:
        raise ValidationError(f"Sections hold {allocated} seats but the venue capacity is {capacity}")


def _build_sections(sections: Sequence[VenueSectionCreate]) -> list[VenueSection]:
    return [
        VenueSection(
            name=section.name,
            capacity=section.capacity,
            price_category=section.price_category,
            position=position,
            rows=[
                VenueRow(name=row.name, seats=row.seats, position=i)
                for i, row in enumerate(section.rows)
            ],
        )
        for position, section in enumerate(sections)
    ]


async def _ensure_name_free(db: AsyncSession, name: str, venue_id: int | None = None) -> None:
    query = select(Venue.id).where(Venue.name == name)
    if venue_id is not None:
        query = query.where(Venue.id != venue_id)
    if await db.scalar(query) is not None:
        raise ConflictError(f"A venue named {name} already exists")


async def count_venue_tickets(db: AsyncSession, venue_id: int) -> int:
    """Tickets ever issued for events held at the venue, released ones included."""
    return await db.scalar(
        select(func.count())
        .select_from(Ticket)
        .join(Event, Event.id == Ticket.event_id)
        .where(Event.venue_id == venue_id)
    )


async def get_venue(db: AsyncSession, venue_id: int) -> Venue:
    result = await db.execute(
        select(Venue).where(Venue.id == venue_id).execution_options(populate_existing=True)
    )
    venue = result.scalar_one_or_none()
    if venue is None:
        raise NotFoundError("Venue", venue_id)
    return venue


async def create_venue(db: AsyncSession, data: VenueCreate) -> Venue:
    await _ensure_name_free(db, data.name)
    _check_layout(data.sections, data.capacity)

    venue = Venue(
        **data.model_dump(exclude={"sections"}),
        sections=_build_sections(data.sections),
    )
    db.add(venue)
    await db.flush()

    logger.info("venue_created", venue_id=venue.id, name=venue.name, sections=len(data.sections))
    return await get_venue(db, venue.id)


async def list_venues(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    include_inactive: bool = False,
) -> tuple[list[Venue], int]:
    """List venues by name."""
    query = select(Venue)
    if not include_inactive:
        query = query.where(Venue.is_active.is_(True))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Venue.name.asc()).offset((page - 1) * page_size).limit(page_size)
    )
    return list(result.scalars().all()), total


async def update_venue(db: AsyncSession, venue_id: int, data: VenueUpdate) -> Venue:
    """
    Change venue details. Replacing the layout or shrinking the capacity is
    refused once tickets exist for an event there.
    """
    venue = await get_venue(db, venue_id)
    changes = data.model_dump(exclude_unset=True, exclude={"sections"})

    if "name" in changes and changes["name"] != venue.name:
        await _ensure_name_free(db, changes["name"], venue.id)

    capacity = changes.get("capacity") or venue.capacity
    layout_changes = data.sections is not None or capacity < venue.capacity
    if layout_changes and await count_venue_tickets(db, venue.id):
        raise ValidationError("Cannot change the layout of a venue that already has tickets sold")

    if data.sections is not None:
        _check_layout(data.sections, capacity)
    else:
        allocated = sum(section.capacity for section in venue.sections)
        if allocated > capacity:
            raise ValidationError(f"Sections hold {allocated} seats but the venue capacity is {capacity}")

    for field, value in changes.items():
        setattr(venue, field, value)

    if data.sections is not None:
        # old sections go first so replacement names do not collide
        venue.sections.clear()
        await db.flush()
        venue.sections.extend(_build_sections(data.sections))
    await db.flush()

    logger.info("venue_updated", venue_id=venue.id, fields=sorted(data.model_dump(exclude_unset=True)))
    return await get_venue(db, venue.id)


async def deactivate_venue(db: AsyncSession, venue_id: int) -> Venue:
    """Venues are never hard deleted; events keep pointing at them."""
    venue = await get_venue(db, venue_id)
    venue.is_active = False
    await db.flush()

    logger.info("venue_deactivated", venue_id=venue.id)
    return await get_venue(db, venue.id)


async def get_venue_sections(db: AsyncSession, venue_id: int) -> list[VenueSection]:
    venue = await get_venue(db, venue_id)
    return list(venue.sections)


async def get_bookable_venue(db: AsyncSession, venue_id: int) -> Venue:
    """A venue new events can be scheduled at."""
    venue = await get_venue(db, venue_id)
    if not venue.is_active:
        raise ValidationError(f"Venue {venue_id} is not active")
    return venue
