"""
User model: the subject permission checks are made against.
"""
from typing import List
from sqlalchemy import String, Boolean, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from single_role.core.database.base import Base, TimestampMixin
from single_role.features.permissions.models import (
    Permission,
    PermissionHolderMixin,
    user_permissions,
)


class User(Base, TimestampMixin, PermissionHolderMixin):
    """
    User model representing application users.

    A user holds at most one role. Its effective permissions are its direct
    grants plus everything granted to that role.
    """
    __tablename__ = "users"
    __permission_table__ = user_permissions
    __permission_owner_column__ = "user_id"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # User information
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # The single assigned role
    role_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    async def gather_permissions(self, store) -> List[Permission]:
        permissions = await super().gather_permissions(store)
        role = await store.get_role(self)
        if role is not None:
            permissions.extend(await role.gather_permissions(store))
        return permissions

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role_id={self.role_id})>"
