"""
Simulated payment lifecycle.

    pending ──> processing ──> completed ──> refunded
       │            │
       └────────────┴──> failed

Checkout only accepts completed payments. Refunding a payment that already
backs an order refunds the order, which releases its seats.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from boxoffice.core.logging import get_logger
from boxoffice.models.order import Order, OrderStatus
from boxoffice.models.payment import Payment, PaymentStatus
from boxoffice.models.user import User
from boxoffice.schemas.payment import PaymentCreate
from boxoffice.services.order_service import update_order_status

logger = get_logger(__name__)

_OPEN_STATUSES = {PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value}


async def create_payment(db: AsyncSession, customer_id: int, data: PaymentCreate) -> Payment:
    payment = Payment(
        customer_id=customer_id,
        amount=data.amount,
        currency=data.currency.upper(),
        method=data.method,
        status=PaymentStatus.PENDING.value,
        card_last4=data.card_number[-4:] if data.card_number else None,
    )
    db.add(payment)
    await db.flush()
    await db.refresh(payment)

    logger.info("payment_created", payment_id=payment.id, customer_id=customer_id, amount=str(payment.amount))
    return payment


async def get_payment(db: AsyncSession, payment_id: int, user: User) -> Payment:
    result = await db.execute(
        select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFoundError("Payment", payment_id)
    if payment.customer_id != user.id and not user.is_admin:
        raise PermissionDeniedError("You can only access your own payments")
    return payment


async def complete_payment(db: AsyncSession, payment_id: int, user: User) -> Payment:
    payment = await get_payment(db, payment_id, user)
    if payment.status not in _OPEN_STATUSES:
        raise ValidationError(f"Cannot complete a payment that is {payment.status}")

    payment.status = PaymentStatus.COMPLETED.value
    await db.flush()
    logger.info("payment_completed", payment_id=payment.id)
    return payment


async def fail_payment(db: AsyncSession, payment_id: int, user: User) -> Payment:
    payment = await get_payment(db, payment_id, user)
    if payment.status not in _OPEN_STATUSES:
        raise ValidationError(f"Cannot fail a payment that is {payment.status}")

    payment.status = PaymentStatus.FAILED.value
    await db.flush()
    logger.info("payment_failed", payment_id=payment.id)
    return payment


async def refund_payment(db: AsyncSession, payment_id: int, user: User) -> Payment:
    payment = await get_payment(db, payment_id, user)
    if payment.status != PaymentStatus.COMPLETED.value:
        raise ValidationError("Only completed payments can be refunded")

    order = (
        await db.execute(select(Order).where(Order.payment_id == payment.id))
    ).scalar_one_or_none()
    if order is not None and order.status == OrderStatus.CONFIRMED.value:
        await update_order_status(db, order.id, OrderStatus.REFUNDED.value, user)
        return await get_payment(db, payment_id, user)

    payment.status = PaymentStatus.REFUNDED.value
    await db.flush()
    logger.info("payment_refunded", payment_id=payment.id)
    return payment
