"""
Venue endpoints. Browsing is public; organizers maintain layouts.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.api.deps import require_roles
from boxoffice.db.session import get_db
from boxoffice.models.user import User, UserRole
from boxoffice.schemas.venue import (
    VenueCreate,
    VenueListResponse,
    VenueResponse,
    VenueSectionResponse,
    VenueUpdate,
)
from boxoffice.services.venue_service import (
    create_venue,
    deactivate_venue,
    get_venue,
    get_venue_sections,
    list_venues,
    update_venue,
)

router = APIRouter(prefix="/venues", tags=["Venues"])


@router.get("/", response_model=VenueListResponse)
async def list_venues_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    venues, total = await list_venues(db, page, page_size)
    return VenueListResponse(
        venues=[VenueResponse.model_validate(v) for v in venues],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/", response_model=VenueResponse, status_code=status.HTTP_201_CREATED)
async def create_venue_endpoint(
    data: VenueCreate,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    """Register a venue with its seating layout."""
    return await create_venue(db, data)


@router.get("/{venue_id}", response_model=VenueResponse)
async def get_venue_endpoint(venue_id: int, db: AsyncSession = Depends(get_db)):
    return await get_venue(db, venue_id)


@router.patch("/{venue_id}", response_model=VenueResponse)
async def update_venue_endpoint(
    venue_id: int,
    data: VenueUpdate,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    return await update_venue(db, venue_id, data)


@router.delete("/{venue_id}", response_model=VenueResponse)
async def deactivate_venue_endpoint(
    venue_id: int,
    user: User = Depends(require_roles()),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a venue. Admins only."""
    return await deactivate_venue(db, venue_id)


@router.get("/{venue_id}/sections", response_model=list[VenueSectionResponse])
async def get_venue_sections_endpoint(venue_id: int, db: AsyncSession = Depends(get_db)):
    return await get_venue_sections(db, venue_id)
