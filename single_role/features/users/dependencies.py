"""
FastAPI dependencies for user lookup.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from single_role.core.database.engine import get_db
from single_role.features.users.models import User


async def get_user_or_404(
    user_id: int,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Load the user named by the ``user_id`` path parameter.

    Usage:
        @router.get("/{user_id}")
        async def get_user(user: User = Depends(get_user_or_404)):
            return user
    """
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user
