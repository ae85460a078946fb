"""Tests for the permission cache container."""

from __future__ import annotations

from single_role.features.permissions.cache import CacheKey, PermissionCache
from single_role.features.permissions.models import Role
from single_role.features.permissions.schemas import PermissionSnapshot
from single_role.features.users.models import User


def test_entries_are_keyed_by_type_and_id() -> None:
    cache = PermissionCache()
    snapshot = (PermissionSnapshot(id=1, name="view"),)

    cache.put(CacheKey(User, 1), snapshot)

    assert cache.get(CacheKey(User, 1)) is snapshot
    assert cache.get(CacheKey(Role, 1)) is None
    assert CacheKey(User, 1) in cache
    assert len(cache) == 1
    assert str(CacheKey(User, 1)) == "User:1"


def test_put_overwrites_and_clear_empties() -> None:
    cache = PermissionCache()
    key = CacheKey(Role, 3)

    cache.put(key, (PermissionSnapshot(id=1, name="view"),))
    cache.put(key, ())

    assert cache.get(key) == ()
    cache.clear()
    assert key not in cache
    assert len(cache) == 0
