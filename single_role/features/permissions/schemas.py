"""
Pydantic schemas for permission management.

Request and response models for permissions, roles and grants, plus the
immutable snapshot stored in the permission cache.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from single_role.features.permissions.refs import looks_like_number


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionBase(BaseModel):
    """Base permission schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Unique permission name")
    description: Optional[str] = Field(None, max_length=1000, description="Permission description")
    attributes: Optional[Dict[str, Any]] = Field(None, description="Free-form permission attributes")


class PermissionCreate(PermissionBase):
    """Schema for creating a new permission."""

    @field_validator('name')
    @classmethod
    def name_format(cls, v: str) -> str:
        """Validate permission name format."""
        if not v.replace('_', '').replace('.', '').replace(':', '').replace('-', '').isalnum():
            raise ValueError('Permission name must contain only alphanumeric characters, underscores, dashes, dots, and colons')
        # A numeric name would be read back as an id, or never matched, by checks
        if looks_like_number(v):
            raise ValueError('Permission name cannot look like a number')
        return v


class PermissionResponse(PermissionBase):
    """Schema for permission response."""
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PermissionSnapshot(BaseModel):
    """Detached, read-only copy of a permission as held in the cache."""
    id: int
    name: str
    description: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""

    @field_validator('name')
    @classmethod
    def name_format(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Role name must contain only alphanumeric characters, underscores, and hyphens')
        if looks_like_number(v):
            raise ValueError('Role name cannot look like a number')
        return v


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(RoleResponse):
    """Schema for role with its permissions."""
    permissions: List[PermissionSnapshot] = []


# ============================================================================
# Grant Schemas
# ============================================================================

class PivotAttributes(BaseModel):
    """Extra data stored on a grant row."""
    assigned_by_id: Optional[int] = Field(None, description="User who made the grant")
    note: Optional[str] = Field(None, max_length=1000)


class AttachPermissions(BaseModel):
    """Schema for granting permissions to a holder."""
    ids: List[int] = Field(..., min_length=1, description="Permission IDs")
    pivot: PivotAttributes = Field(default_factory=PivotAttributes)
    touch: bool = True


class DetachPermissions(BaseModel):
    """Schema for revoking permissions; no ids revokes everything."""
    ids: Optional[List[int]] = Field(None, description="Permission IDs, or null for all")
    touch: bool = True


class SyncPermissions(BaseModel):
    """Schema for replacing a holder's grants with exactly ``ids``."""
    ids: List[int] = Field(default_factory=list)
    pivot: Dict[int, PivotAttributes] = Field(default_factory=dict, description="Pivot values per permission ID")
    detaching: bool = True

    def as_store_argument(self) -> List[int] | Dict[int, Dict[str, Any]]:
        if not self.pivot:
            return list(self.ids)
        return {
            permission_id: self.pivot.get(permission_id, PivotAttributes()).model_dump(exclude_none=True)
            for permission_id in self.ids
        }


class SyncResult(BaseModel):
    """What a sync changed."""
    attached: List[int] = []
    detached: List[int] = []
    updated: List[int] = []


# ============================================================================
# Permission Check Schemas
# ============================================================================

class EffectivePermissionsResponse(BaseModel):
    """Effective permission set of a user or role."""
    holder: str
    holder_id: int
    permissions: List[PermissionSnapshot]


class PermissionCheckResponse(BaseModel):
    """Schema for a permission check result."""
    holder: str
    holder_id: int
    permissions: List[str]
    all: bool
    allowed: bool
