"""
Permission resolution and caching.

The resolver answers "does this user (or role) have permission X?" from a
cached effective permission set:

- A role's set is its own grants.
- A user's set is its own grants plus its role's grants, de-duplicated by
  permission id (own grants first).

Sets are cached per (holder type, holder id) for the life of the cache object
and recomputed wholesale after every grant or role change made through the
resolver. Changes made behind its back (e.g. a role gaining a permission while
its users are cached) are not seen until those entries are refreshed. The
HTTP layer builds one cache per request, so such changes show up on the next
request.
"""
from typing import Any, Dict, Iterable, Optional, Union

from single_role.core import config
from single_role.features.permissions.cache import CacheKey, PermissionCache, PermissionSet
from single_role.features.permissions.models import Role
from single_role.features.permissions.refs import RefLike, parse_permission_ref, parse_permission_refs
from single_role.features.permissions.schemas import PermissionSnapshot
from single_role.features.permissions.store import PermissionIds, PermissionStore, SyncRecords
from single_role.utils import get_logger


log = get_logger(__name__)


class PermissionResolver:
    """
    Computes, caches and queries effective permission sets.

    Usage:
        resolver = PermissionResolver(SQLAlchemyPermissionStore(db), cache)
        await resolver.attach_permissions(user, [1, 2])
        if await resolver.has_permissions(user, "posts.edit|posts.delete", require_all=True):
            ...

    Store failures propagate unchanged; the cache entry is only rewritten after
    the store call succeeded.
    """

    def __init__(
        self,
        store: PermissionStore,
        cache: Optional[PermissionCache] = None,
        delimiter: str = config.PERMISSION_DELIMITER,
    ):
        self.store = store
        self.cache = cache if cache is not None else PermissionCache()
        self.delimiter = delimiter

    def cache_key(self, entity) -> CacheKey:
        return CacheKey(type(entity), self.store.get_identity(entity))

    # ========================================================================
    # Resolution
    # ========================================================================

    async def _resolve(self, entity) -> PermissionSet:
        unique: Dict[int, PermissionSnapshot] = {}
        for permission in await entity.gather_permissions(self.store):
            if permission.id not in unique:
                unique[permission.id] = PermissionSnapshot.model_validate(permission)
        return tuple(unique.values())

    async def refresh(self, entity) -> PermissionSet:
        """Recompute and overwrite the cached set of ``entity``."""
        key = self.cache_key(entity)
        permissions = self.cache.put(key, await self._resolve(entity))
        log.debug(f"Refreshed permission cache for {key}: {len(permissions)} permissions")
        return permissions

    async def get_permissions(self, entity) -> PermissionSet:
        """Return the effective permission set of ``entity``, cached after the first call."""
        cached = self.cache.get(self.cache_key(entity))
        if cached is not None:
            return cached
        return await self.refresh(entity)

    # ========================================================================
    # Membership queries
    # ========================================================================

    async def has_permission(self, entity, permission: RefLike) -> bool:
        """
        Check a single permission.

        Args:
            entity: User or Role
            permission: PermissionRef, id, or string ("5" is an id, anything else a name)

        Returns:
            True if any permission in the effective set matches
        """
        ref = parse_permission_ref(permission)
        return any(ref.matches(item) for item in await self.get_permissions(entity))

    async def has_permissions(
        self,
        entity,
        permissions: Union[str, Iterable[RefLike]],
        require_all: bool = False,
    ) -> bool:
        """
        Check several permissions at once.

        ``permissions`` is either "a|b|c" or a sequence of references. With
        ``require_all=False`` one match is enough; with ``require_all=True``
        every reference must match. An empty sequence is False for "any" and
        True for "all".
        """
        for ref in parse_permission_refs(permissions, self.delimiter):
            allowed = await self.has_permission(entity, ref)
            if allowed and not require_all:
                return True
            if not allowed and require_all:
                return False
        return require_all

    # ========================================================================
    # Grants
    # ========================================================================

    async def attach_permissions(
        self,
        entity,
        ids: PermissionIds,
        attributes: Optional[Dict[str, Any]] = None,
        touch: bool = True,
    ):
        await self.store.attach(entity, ids, attributes or {}, touch)
        await self.refresh(entity)
        log.info(f"Attached permissions to {self.cache_key(entity)}")
        return entity

    async def detach_permissions(self, entity, ids: Optional[PermissionIds] = None, touch: bool = True):
        await self.store.detach(entity, ids, touch)
        await self.refresh(entity)
        log.info(f"Detached {'all' if ids is None else 'some'} permissions from {self.cache_key(entity)}")
        return entity

    async def sync_permissions(self, entity, ids: SyncRecords, detaching: bool = True):
        changes = await self.store.sync(entity, ids, detaching)
        await self.refresh(entity)
        log.info(f"Synced permissions of {self.cache_key(entity)}: {changes}")
        return entity

    # ========================================================================
    # Role assignment
    # ========================================================================

    async def assign_role(self, entity, role: Role):
        """Give ``entity`` its one role, replacing any previous role."""
        if self.store.is_role(entity):
            raise TypeError("A role cannot be assigned a role")
        await self.store.set_role(entity, role)
        await self.refresh(entity)
        log.info(f"Assigned role {role.name!r} to {self.cache_key(entity)}")
        return entity

    async def remove_role(self, entity):
        if self.store.is_role(entity):
            raise TypeError("A role cannot be assigned a role")
        await self.store.set_role(entity, None)
        await self.refresh(entity)
        log.info(f"Removed role from {self.cache_key(entity)}")
        return entity

    async def has_role(self, entity, role: RefLike) -> bool:
        """True if ``entity``'s role matches ``role`` by id or by name."""
        current = await self.store.get_role(entity)
        if current is None:
            return False
        return parse_permission_ref(role).matches(current)
