"""Tests for the SQLAlchemy-backed permission store and resolver on top of it."""

from __future__ import annotations

from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from single_role.features.permissions.models import Permission, Role, role_permissions, user_permissions
from single_role.features.permissions.resolver import PermissionResolver
from single_role.features.permissions.store import SQLAlchemyPermissionStore
from single_role.features.users.models import User


@pytest_asyncio.fixture()
async def catalogue(session: AsyncSession) -> dict[str, Permission]:
    permissions = {name: Permission(name=name) for name in ("view", "edit", "delete", "publish")}
    session.add_all(permissions.values())
    await session.flush()
    return permissions


@pytest_asyncio.fixture()
async def role(session: AsyncSession) -> Role:
    role = Role(name="editor")
    session.add(role)
    await session.flush()
    return role


@pytest_asyncio.fixture()
async def user(session: AsyncSession, role: Role) -> User:
    user = User(email="user@example.com", name="User", role_id=role.id)
    session.add(user)
    await session.flush()
    return user


@pytest.fixture()
def store(session: AsyncSession) -> SQLAlchemyPermissionStore:
    return SQLAlchemyPermissionStore(session)


@pytest.fixture()
def resolver(store: SQLAlchemyPermissionStore) -> PermissionResolver:
    return PermissionResolver(store)


def names(permissions) -> list[str]:
    return [permission.name for permission in permissions]


@pytest.mark.asyncio
async def test_attach_writes_pivot_attributes(
    session: AsyncSession, store: SQLAlchemyPermissionStore, user: User, catalogue
) -> None:
    await store.attach(user, [catalogue["view"], catalogue["edit"].id], {"note": "onboarding"})

    rows = (await session.execute(select(user_permissions))).mappings().all()
    assert sorted(row["permission_id"] for row in rows) == [catalogue["view"].id, catalogue["edit"].id]
    assert all(row["user_id"] == user.id for row in rows)
    assert all(row["note"] == "onboarding" for row in rows)
    assert all(row["assigned_at"] is not None for row in rows)
    assert names(await store.fetch_associated(user)) == ["view", "edit"]


@pytest.mark.asyncio
async def test_attach_touches_owner(store: SQLAlchemyPermissionStore, user: User, catalogue) -> None:
    stamp = datetime(2000, 1, 1)
    user.updated_at = stamp

    await store.attach(user, catalogue["view"].id)
    assert user.updated_at != stamp


@pytest.mark.asyncio
async def test_attach_without_touch_leaves_timestamp(
    store: SQLAlchemyPermissionStore, user: User, catalogue
) -> None:
    stamp = datetime(2000, 1, 1)
    user.updated_at = stamp

    await store.attach(user, catalogue["view"].id, touch=False)
    assert user.updated_at == stamp


@pytest.mark.asyncio
async def test_attaching_twice_violates_constraint(
    store: SQLAlchemyPermissionStore, user: User, catalogue
) -> None:
    await store.attach(user, catalogue["view"].id)

    with pytest.raises(IntegrityError):
        await store.attach(user, catalogue["view"].id)


@pytest.mark.asyncio
async def test_unknown_pivot_attribute_is_an_error(
    session: AsyncSession, store: SQLAlchemyPermissionStore, user: User, catalogue
) -> None:
    with pytest.raises(ValueError, match="colour"):
        await store.attach(user, catalogue["view"].id, {"colour": "blue"})

    rows = (await session.execute(select(user_permissions))).all()
    assert rows == []


@pytest.mark.asyncio
async def test_sync_rejects_unknown_pivot_attribute(
    session: AsyncSession, store: SQLAlchemyPermissionStore, role: Role, catalogue
) -> None:
    await store.attach(role, catalogue["view"].id)

    with pytest.raises(ValueError, match="colour"):
        await store.sync(role, {catalogue["view"].id: {"colour": "blue"}, catalogue["edit"].id: {}})

    rows = (await session.execute(select(role_permissions.c.permission_id))).scalars().all()
    assert rows == [catalogue["view"].id]


@pytest.mark.asyncio
async def test_detach_some_or_all(store: SQLAlchemyPermissionStore, role: Role, catalogue) -> None:
    await store.attach(role, [p.id for p in catalogue.values()])

    assert await store.detach(role, catalogue["view"].id) == 1
    assert await store.detach(role, []) == 0
    assert names(await store.fetch_associated(role)) == ["edit", "delete", "publish"]

    assert await store.detach(role) == 3
    assert await store.fetch_associated(role) == []


@pytest.mark.asyncio
async def test_sync_reports_changes(
    session: AsyncSession, store: SQLAlchemyPermissionStore, role: Role, catalogue
) -> None:
    view, edit, delete = catalogue["view"].id, catalogue["edit"].id, catalogue["delete"].id
    await store.attach(role, [view, edit])

    result = await store.sync(role, {edit: {"note": "kept"}, delete: {}})

    assert result.attached == [delete]
    assert result.detached == [view]
    assert result.updated == [edit]
    rows = (await session.execute(select(role_permissions))).mappings().all()
    assert {row["permission_id"]: row["note"] for row in rows} == {edit: "kept", delete: None}


@pytest.mark.asyncio
async def test_sync_without_detaching(store: SQLAlchemyPermissionStore, role: Role, catalogue) -> None:
    await store.attach(role, catalogue["view"].id)

    result = await store.sync(role, [catalogue["publish"].id], detaching=False)

    assert result.detached == []
    assert names(await store.fetch_associated(role)) == ["view", "publish"]


@pytest.mark.asyncio
async def test_entity_repository(store: SQLAlchemyPermissionStore, user: User, role: Role) -> None:
    assert store.get_identity(user) == user.id
    assert store.is_role(role) is True
    assert store.is_role(user) is False
    assert await store.get_role(user) is role
    assert await store.get_role(role) is None

    await store.set_role(user, None)
    assert user.role_id is None
    assert await store.get_role(user) is None


@pytest.mark.asyncio
async def test_resolver_merges_role_permissions(
    resolver: PermissionResolver, user: User, role: Role, catalogue
) -> None:
    await resolver.attach_permissions(role, [catalogue["edit"].id, catalogue["view"].id])
    await resolver.attach_permissions(user, catalogue["view"].id)

    assert names(await resolver.get_permissions(user)) == ["view", "edit"]
    assert await resolver.has_permissions(user, "view|edit", require_all=True) is True
    assert await resolver.has_permission(user, str(catalogue["edit"].id)) is True
    assert await resolver.has_permission(user, "delete") is False


@pytest.mark.asyncio
async def test_resolver_detach_and_sync(
    resolver: PermissionResolver, user: User, catalogue
) -> None:
    await resolver.attach_permissions(user, catalogue["publish"].id)
    assert await resolver.has_permission(user, "publish") is True

    await resolver.detach_permissions(user, catalogue["publish"].id)
    assert await resolver.has_permission(user, "publish") is False

    await resolver.sync_permissions(user, [catalogue["delete"].id])
    assert names(await resolver.get_permissions(user)) == ["delete"]


@pytest.mark.asyncio
async def test_resolver_role_assignment(
    session: AsyncSession, resolver: PermissionResolver, user: User, role: Role, catalogue
) -> None:
    admin = Role(name="admin")
    session.add(admin)
    await session.flush()
    await resolver.attach_permissions(admin, catalogue["publish"].id)

    await resolver.assign_role(user, admin)

    assert user.role_id == admin.id
    assert await resolver.has_role(user, "admin") is True
    assert await resolver.has_role(user, role.id) is False
    assert names(await resolver.get_permissions(user)) == ["publish"]
