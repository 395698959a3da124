"""
Order queries and order-level cancellation or refund.

Changing an order's status cascades to its tickets through release_seats, so
the seats and the performance capacity come back exactly once. The release is
idempotent, which makes a retried status change safe even if it failed after
the tickets were released.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from boxoffice.core.logging import get_logger
from boxoffice.db.transaction import run_in_transaction
from boxoffice.models.order import Order, OrderStatus
from boxoffice.models.payment import Payment, PaymentStatus
from boxoffice.models.user import User
from boxoffice.schemas.order import ReleaseReason
from boxoffice.services.reservation_service import release_seats

logger = get_logger(__name__)


async def _load_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


async def get_order(db: AsyncSession, order_id: int, user: User) -> Order:
    order = await _load_order(db, order_id)
    if order.customer_id != user.id and not user.is_admin:
        raise PermissionDeniedError("You can only access your own orders")
    return order


async def list_customer_orders(
    db: AsyncSession,
    customer_id: int,
    page: int = 1,
    page_size: int = 20,
    status: str | None = None,
) -> tuple[list[Order], int]:
    query = select(Order).where(Order.customer_id == customer_id)
    if status:
        query = query.where(Order.status == status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def update_order_status(db: AsyncSession, order_id: int, status: str, user: User) -> Order:
    """Cancel or refund a confirmed order, releasing all of its tickets."""
    try:
        target = OrderStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid order status: {status}")

    order = await get_order(db, order_id, user)
    if order.status == target.value:
        return order
    if target is OrderStatus.CONFIRMED or order.status != OrderStatus.CONFIRMED.value:
        raise ValidationError(f"Cannot change order status from {order.status} to {target.value}")

    ticket_ids = [t.id for t in order.tickets]
    if ticket_ids:
        await release_seats(db, ticket_ids, ReleaseReason(target.value))

    async def _finish() -> Order:
        fresh = await _load_order(db, order_id)
        fresh.status = target.value
        if target is OrderStatus.REFUNDED:
            payment = await db.get(Payment, fresh.payment_id, populate_existing=True)
            if payment is not None and payment.status == PaymentStatus.COMPLETED.value:
                payment.status = PaymentStatus.REFUNDED.value
        return fresh

    order = await run_in_transaction(db, _finish, operation="update_order_status")
    logger.info("order_status_changed", order_id=order_id, status=target.value, tickets=len(ticket_ids))
    return order
