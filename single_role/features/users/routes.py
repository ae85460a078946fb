"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from single_role.core.database.engine import get_db
from single_role.features.permissions.dependencies import get_holder, get_permission_resolver
from single_role.features.permissions.resolver import PermissionResolver
from single_role.features.users.dependencies import get_user_or_404
from single_role.features.users.models import User
from single_role.features.users.schemas import (
    UserCreate,
    UserResponse,
    RoleAssignment,
    RoleCheckResponse,
)
from single_role.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a user, optionally with a role."""
    if user_data.role_id is not None:
        await get_holder(db, "roles", user_data.role_id)
    try:
        user = User(**user_data.model_dump())
        db.add(user)
        await db.commit()
        await db.refresh(user)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )
    log.info(f"Created user {user.id} with role {user.role_id}")
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user: Annotated[User, Depends(get_user_or_404)]
):
    """Get a user by ID."""
    return user


@router.put("/{user_id}/role", response_model=UserResponse)
async def assign_role(
    assignment: RoleAssignment,
    user: Annotated[User, Depends(get_user_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
    resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)]
):
    """Give the user its role, replacing any previous one."""
    role = await get_holder(db, "roles", assignment.role_id)
    await resolver.assign_role(user, role)
    await db.commit()
    return user


@router.delete("/{user_id}/role", response_model=UserResponse)
async def remove_role(
    user: Annotated[User, Depends(get_user_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
    resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)]
):
    """Take the user's role away."""
    await resolver.remove_role(user)
    await db.commit()
    return user


@router.get("/{user_id}/role/check", response_model=RoleCheckResponse)
async def check_role(
    user: Annotated[User, Depends(get_user_or_404)],
    resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)],
    role: str = Query(..., description="Role ID or name"),
):
    """Check whether the user holds the given role."""
    return RoleCheckResponse(user_id=user.id, role=role, allowed=await resolver.has_role(user, role))
