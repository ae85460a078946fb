"""
Permission dependencies for FastAPI routes.

Implements:
- A per-request resolver with its own permission cache
- Holder lookup for routes addressing users or roles
- ``require_permissions`` guard for routes that carry a ``user_id``
"""
from typing import Iterable, Literal, Union
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from single_role.core.database.engine import get_db
from single_role.features.permissions.cache import PermissionCache
from single_role.features.permissions.models import Role
from single_role.features.permissions.refs import RefLike
from single_role.features.permissions.resolver import PermissionResolver
from single_role.features.permissions.store import SQLAlchemyPermissionStore
from single_role.features.users.dependencies import get_user_or_404
from single_role.features.users.models import User
from single_role.utils import get_logger


log = get_logger(__name__)

HolderName = Literal["users", "roles"]
HOLDER_MODELS = {"users": User, "roles": Role}


async def get_permission_resolver(db: AsyncSession = Depends(get_db)) -> PermissionResolver:
    """
    Resolver for the current request: request-scoped store and cache.

    The cache lives only as long as the request, so grants changed or rolled
    back by another request are read fresh from the database.

    Usage:
        @router.get("/{user_id}/can-edit")
        async def can_edit(
            user_id: int,
            resolver: PermissionResolver = Depends(get_permission_resolver),
        ):
            ...
    """
    return PermissionResolver(SQLAlchemyPermissionStore(db), PermissionCache())


async def get_holder(db: AsyncSession, holder: HolderName, holder_id: int) -> Union[User, Role]:
    """Load the user or role addressed by a route, or raise 404."""
    model = HOLDER_MODELS[holder]
    entity = await db.get(model, holder_id)
    if entity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{model.__name__} not found"
        )
    return entity


def require_permissions(permissions: Union[str, Iterable[RefLike]], require_all: bool = False):
    """
    FastAPI dependency to require permissions of the user named in the path.

    Usage:
        @router.post("/{user_id}/posts")
        async def create_post(
            user: User = Depends(require_permissions("posts.create|posts.admin"))
        ):
            pass

    Args:
        permissions: "a|b" string or sequence of permission ids/names
        require_all: Require every permission instead of any one of them

    Returns:
        Dependency function that returns the user if the check passes

    Raises:
        HTTPException: 404 if the user doesn't exist, 403 if the check fails
    """
    async def permission_dependency(
        user: User = Depends(get_user_or_404),
        resolver: PermissionResolver = Depends(get_permission_resolver),
    ) -> User:
        if not await resolver.has_permissions(user, permissions, require_all):
            log.debug(f"User {user.id} denied: {permissions} (all={require_all})")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {'all' if require_all else 'one'} of {permissions} required"
            )
        return user

    return permission_dependency
