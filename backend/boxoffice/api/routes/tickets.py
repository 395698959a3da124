"""
Ticket endpoints: lookup, status changes, release and door check-in.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.api.deps import get_current_user, require_roles
from boxoffice.db.session import get_db
from boxoffice.models.user import User, UserRole
from boxoffice.schemas.order import ReleaseRequest
from boxoffice.schemas.ticket import CheckInRequest, TicketListResponse, TicketResponse, TicketStatusUpdate
from boxoffice.services.ticket_service import (
    check_in_ticket,
    get_ticket,
    list_customer_tickets,
    release_tickets,
    update_ticket_status,
)

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("/", response_model=TicketListResponse)
async def list_tickets(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tickets, total = await list_customer_tickets(db, user.id, page, page_size, status_filter)
    return TicketListResponse(
        tickets=[TicketResponse.model_validate(t) for t in tickets],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/release", response_model=list[TicketResponse])
async def release_tickets_endpoint(
    data: ReleaseRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel or refund tickets. Already released tickets are returned unchanged."""
    return await release_tickets(db, data.ticket_ids, data.reason.value, user)


@router.post("/check-in", response_model=TicketResponse)
async def check_in(
    data: CheckInRequest,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    """Scan a ticket at the door."""
    return await check_in_ticket(db, data.barcode, user)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket_endpoint(
    ticket_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_ticket(db, ticket_id, user)


@router.patch("/{ticket_id}/status", response_model=TicketResponse)
async def update_ticket_status_endpoint(
    ticket_id: int,
    data: TicketStatusUpdate,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    return await update_ticket_status(db, ticket_id, data.status, user)
