"""
Checkout and order endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.api.deps import get_current_user
from boxoffice.db.session import get_db
from boxoffice.models.user import User
from boxoffice.schemas.order import OrderCreate, OrderListResponse, OrderResponse, OrderStatusUpdate
from boxoffice.services.order_service import get_order, list_customer_orders, update_order_status
from boxoffice.services.reservation_service import reserve_seats

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    data: OrderCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Turn a completed payment into an order with tickets.

    Returns 409 with the conflicting seats if any are already taken, and 503
    if the performance stayed contended through every retry.
    """
    customer_id = user.id
    reservation = await reserve_seats(
        db,
        performance_id=data.performance_id,
        payment_id=data.payment_id,
        requested_seats=data.tickets,
        customer_id=customer_id,
        customer_details=data.customer_details,
        event_id=data.event_id,
    )
    return reservation.order


@router.get("/", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await list_customer_orders(db, user.id, page, page_size, status_filter)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order_endpoint(
    order_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_order(db, order_id, user)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status_endpoint(
    order_id: int,
    data: OrderStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel or refund an order; its seats go back on sale."""
    return await update_order_status(db, order_id, data.status.value, user)
