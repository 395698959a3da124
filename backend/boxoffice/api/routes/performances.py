"""
Performance endpoints.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.api.deps import require_roles
from boxoffice.db.session import get_db
from boxoffice.models.user import User, UserRole
from boxoffice.schemas.performance import PerformanceResponse, PerformanceUpdate
from boxoffice.services.performance_service import (
    cancel_performance,
    delete_performance,
    get_performance,
    update_performance,
)

router = APIRouter(prefix="/performances", tags=["Performances"])


@router.get("/{performance_id}", response_model=PerformanceResponse)
async def get_performance_endpoint(performance_id: int, db: AsyncSession = Depends(get_db)):
    """Get a performance with live availability (not cached)."""
    return await get_performance(db, performance_id)


@router.patch("/{performance_id}", response_model=PerformanceResponse)
async def update_performance_endpoint(
    performance_id: int,
    data: PerformanceUpdate,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    return await update_performance(db, performance_id, data, user)


@router.post("/{performance_id}/cancel", response_model=PerformanceResponse)
async def cancel_performance_endpoint(
    performance_id: int,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    return await cancel_performance(db, performance_id, user)


@router.delete("/{performance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_performance_endpoint(
    performance_id: int,
    user: User = Depends(require_roles(UserRole.ORGANIZER)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a performance, or deactivate it if tickets were sold."""
    await delete_performance(db, performance_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
