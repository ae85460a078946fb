"""
Permission and Role models for single-role RBAC.

This module implements the persistent side of the permission system:
- A catalogue of permissions identified by integer id and unique name
- Roles bundling permissions
- Direct permission grants on any holder (users, roles)
- Pivot columns on every grant (who granted it, when, an optional note)

A user holds at most one role; see ``single_role.features.users.models``.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List
from sqlalchemy import String, ForeignKey, Table, Column, JSON, Text, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from single_role.core.database.base import Base, TimestampMixin

if TYPE_CHECKING:
    from single_role.features.permissions.store import PermissionStore


# ============================================================================
# Association Tables for Many-to-Many Relationships
# ============================================================================

def _grant_table(name: str, owner_column: str, owner_table: str) -> Table:
    return Table(
        name,
        Base.metadata,
        Column(owner_column, Integer, ForeignKey(f"{owner_table}.id", ondelete="CASCADE"), primary_key=True),
        Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
        # Pivot attributes
        Column("assigned_at", DateTime(timezone=True), nullable=False, default=datetime.now),
        Column("assigned_by_id", Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        Column("note", Text, nullable=True),
    )


# Role-Permission relationship
role_permissions = _grant_table("role_permissions", "role_id", "roles")

# User direct permissions (supplement the permissions of the user's role)
user_permissions = _grant_table("user_permissions", "user_id", "users")


# ============================================================================
# Core Models
# ============================================================================

class Permission(Base, TimestampMixin):
    """
    Permission model: an atomic authorization unit.

    Checks may name a permission either by id ("5") or by name ("posts.edit").
    """
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Free-form attributes, e.g. {"group": "posts"}
    attributes: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, name={self.name!r})>"


class PermissionHolderMixin:
    """
    Anything that can be granted permissions directly.

    Subclasses name the grant table (``__permission_table__``) and the column
    pointing back at them (``__permission_owner_column__``).
    ``gather_permissions`` returns the holder's effective permissions before
    de-duplication; holders that inherit permissions from elsewhere override it.
    """

    async def gather_permissions(self, store: "PermissionStore") -> List[Permission]:
        return list(await store.fetch_associated(self))


class Role(Base, TimestampMixin, PermissionHolderMixin):
    """
    Role model: a named bundle of permissions.

    Examples: admin, editor, viewer
    """
    __tablename__ = "roles"
    __permission_table__ = role_permissions
    __permission_owner_column__ = "role_id"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r})>"
