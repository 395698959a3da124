"""
Shared route dependencies: the authenticated user and role checks.
"""

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import PermissionDeniedError
from boxoffice.core.security import get_current_user_id
from boxoffice.db.session import get_db
from boxoffice.models.user import User, UserRole


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_roles(*roles: UserRole):
    """Dependency factory: admins always pass, everyone else needs one of `roles`."""
    allowed = {role.value for role in roles} | {UserRole.ADMIN.value}

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError("You do not have permission to perform this action")
        return user

    return _check
