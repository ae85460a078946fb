"""
Permission management API routes.

Provides endpoints for the permission catalogue, roles, and the grants held by
users and roles, plus effective-permission lookups and checks.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from single_role.core.database.engine import get_db
from single_role.features.permissions.models import Permission, Role
from single_role.features.permissions.schemas import (
    PermissionCreate,
    PermissionResponse,
    RoleCreate,
    RoleResponse,
    RoleWithPermissions,
    AttachPermissions,
    DetachPermissions,
    SyncPermissions,
    EffectivePermissionsResponse,
    PermissionCheckResponse,
)
from single_role.features.permissions.dependencies import (
    HolderName,
    get_holder,
    get_permission_resolver,
)
from single_role.features.permissions.refs import parse_permission_refs
from single_role.features.permissions.resolver import PermissionResolver
from single_role.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _ensure_permissions_exist(db: AsyncSession, ids: List[int]) -> None:
    result = await db.execute(select(Permission.id).where(Permission.id.in_(ids)))
    missing = sorted(set(ids) - set(result.scalars().all()))
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Permissions not found: {missing}"
        )


# ============================================================================
# Permission Routes
# ============================================================================

@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission: PermissionCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new permission."""
    try:
        db_permission = Permission(**permission.model_dump())
        db.add(db_permission)
        await db.commit()
        await db.refresh(db_permission)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Permission with this name already exists"
        )
    log.info(f"Created permission {db_permission.name!r} ({db_permission.id})")
    return db_permission


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """List permissions ordered by ID."""
    stmt = select(Permission).order_by(Permission.id).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/permissions/{permission_id}", response_model=PermissionResponse)
async def get_permission(
    permission_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific permission by ID."""
    permission = await db.get(Permission, permission_id)
    if not permission:
        raise HTTPException(status_code=404, detail="Permission not found")
    return permission


# ============================================================================
# Role Routes
# ============================================================================

@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new role."""
    try:
        db_role = Role(**role.model_dump())
        db.add(db_role)
        await db.commit()
        await db.refresh(db_role)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )
    log.info(f"Created role {db_role.name!r} ({db_role.id})")
    return db_role


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """List roles ordered by ID."""
    result = await db.execute(select(Role).order_by(Role.id).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/roles/{role_id}", response_model=RoleWithPermissions)
async def get_role(
    role_id: int,
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    """Get a role with its permissions."""
    role = await get_holder(db, "roles", role_id)
    permissions = await resolver.get_permissions(role)
    return RoleWithPermissions(
        **RoleResponse.model_validate(role).model_dump(),
        permissions=list(permissions),
    )


# ============================================================================
# Grant Routes (users and roles)
# ============================================================================

@router.get("/{holder}/{holder_id}/effective", response_model=EffectivePermissionsResponse)
async def get_effective_permissions(
    holder: HolderName,
    holder_id: int,
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    """Effective permissions: own grants, plus the role's grants for users."""
    entity = await get_holder(db, holder, holder_id)
    permissions = await resolver.get_permissions(entity)
    return EffectivePermissionsResponse(holder=holder, holder_id=holder_id, permissions=list(permissions))


@router.get("/{holder}/{holder_id}/check", response_model=PermissionCheckResponse)
async def check_permissions(
    holder: HolderName,
    holder_id: int,
    permissions: str = Query(..., description="Permission ids or names separated by '|'"),
    all: bool = Query(False, description="Require every permission instead of any"),
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    """Check one or more permissions, e.g. ?permissions=posts.edit|posts.delete&all=true"""
    entity = await get_holder(db, holder, holder_id)
    refs = parse_permission_refs(permissions, resolver.delimiter)
    allowed = await resolver.has_permissions(entity, refs, require_all=all)
    return PermissionCheckResponse(
        holder=holder,
        holder_id=holder_id,
        permissions=[str(ref) for ref in refs],
        all=all,
        allowed=allowed,
    )


@router.post("/{holder}/{holder_id}/attach", response_model=EffectivePermissionsResponse)
async def attach_permissions(
    holder: HolderName,
    holder_id: int,
    request: AttachPermissions,
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    """Grant permissions to a user or role."""
    entity = await get_holder(db, holder, holder_id)
    await _ensure_permissions_exist(db, request.ids)
    try:
        await resolver.attach_permissions(
            entity,
            request.ids,
            request.pivot.model_dump(exclude_none=True),
            touch=request.touch,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Permission already granted"
        )
    permissions = await resolver.get_permissions(entity)
    return EffectivePermissionsResponse(holder=holder, holder_id=holder_id, permissions=list(permissions))


@router.post("/{holder}/{holder_id}/detach", response_model=EffectivePermissionsResponse)
async def detach_permissions(
    holder: HolderName,
    holder_id: int,
    request: DetachPermissions,
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    """Revoke some, or with no ids all, permissions of a user or role."""
    entity = await get_holder(db, holder, holder_id)
    await resolver.detach_permissions(entity, request.ids, touch=request.touch)
    await db.commit()
    permissions = await resolver.get_permissions(entity)
    return EffectivePermissionsResponse(holder=holder, holder_id=holder_id, permissions=list(permissions))


@router.put("/{holder}/{holder_id}/sync", response_model=EffectivePermissionsResponse)
async def sync_permissions(
    holder: HolderName,
    holder_id: int,
    request: SyncPermissions,
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    """Replace the grants of a user or role with exactly the given ids."""
    entity = await get_holder(db, holder, holder_id)
    if request.ids:
        await _ensure_permissions_exist(db, request.ids)
    await resolver.sync_permissions(entity, request.as_store_argument(), detaching=request.detaching)
    await db.commit()
    permissions = await resolver.get_permissions(entity)
    return EffectivePermissionsResponse(holder=holder, holder_id=holder_id, permissions=list(permissions))
