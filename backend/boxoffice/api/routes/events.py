"""
Event endpoints with Redis caching on list operations.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.api.deps import require_roles
from boxoffice.db.session import get_db
from boxoffice.models.user import User, UserRole
from boxoffice.schemas.event import EventCreate, EventListResponse, EventResponse, EventUpdate
from boxoffice.schemas.performance import PerformanceCreate, PerformanceListResponse, PerformanceResponse
from boxoffice.services.event_service import (
    create_event,
    delete_event,
    get_event,
    list_events,
    toggle_publish,
    update_event,
)
from boxoffice.services.performance_service import create_performance, list_performances_for_event
from boxoffice.services.cache_service import (
    event_list_key,
    get_cached,
    performance_list_key,
    set_cached,
)
from boxoffice.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Organizers and admins only."""
    return await create_event(db, event_data, user.id)


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    List published, active events with pagination.
    Results are cached in Redis; the cache is invalidated whenever an event changes.
    """
    key = event_list_key(page, page_size)
    cached = await get_cached(key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, page, page_size)

    response_data = {
        "events": [EventResponse.model_validate(e).model_dump() for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached(key, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await get_event(db, event_id)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    data: EventUpdate,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    return await update_event(db, event_id, data, user)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: int,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    """Delete an event, or deactivate it if performances were scheduled."""
    await delete_event(db, event_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{event_id}/publish", response_model=EventResponse)
async def toggle_publish_endpoint(
    event_id: int,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    """Publish or unpublish an event in the public catalog."""
    return await toggle_publish(db, event_id, user)


@router.post(
    "/{event_id}/performances",
    response_model=PerformanceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_performance_endpoint(
    event_id: int,
    data: PerformanceCreate,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    """Schedule a performance for an event you organize."""
    return await create_performance(db, event_id, data, user)


@router.get("/{event_id}/performances", response_model=PerformanceListResponse)
async def list_performances_endpoint(
    event_id: int,
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    List an event's performances with availability.
    Availability shown here is display data; checkout re-checks it.
    """
    key = performance_list_key(event_id, active_only)
    cached = await get_cached(key)
    if cached:
        cached["cached"] = True
        return PerformanceListResponse(**cached)

    performances = await list_performances_for_event(db, event_id, active_only)
    response_data = {
        "performances": [
            PerformanceResponse.model_validate(p).model_dump(mode="json") for p in performances
        ],
        "total": len(performances),
        "cached": False,
    }
    await set_cached(key, response_data)

    return PerformanceListResponse(**response_data)
