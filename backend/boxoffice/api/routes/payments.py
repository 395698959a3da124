"""
Payment endpoints. The gateway is simulated: a client creates a payment and
then completes or fails it.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.api.deps import get_current_user
from boxoffice.db.session import get_db
from boxoffice.models.user import User
from boxoffice.schemas.payment import PaymentCreate, PaymentResponse
from boxoffice.services.payment_service import (
    complete_payment,
    create_payment,
    fail_payment,
    get_payment,
    refund_payment,
)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_endpoint(
    data: PaymentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await create_payment(db, user.id, data)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment_endpoint(
    payment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_payment(db, payment_id, user)


@router.post("/{payment_id}/complete", response_model=PaymentResponse)
async def complete_payment_endpoint(
    payment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await complete_payment(db, payment_id, user)


@router.post("/{payment_id}/fail", response_model=PaymentResponse)
async def fail_payment_endpoint(
    payment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await fail_payment(db, payment_id, user)


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment_endpoint(
    payment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Refund a payment. If it backs an order, the order's seats are released."""
    return await refund_payment(db, payment_id, user)
