"""
Persistence behind the permission resolver.

``PermissionStore`` is everything the resolver needs from storage: reading and
writing a holder's grants, and finding the role a subject holds.
``SQLAlchemyPermissionStore`` implements it on top of an ``AsyncSession``.

Writes are flushed, never committed; the surrounding unit of work owns the
transaction.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Union
from sqlalchemy import select, insert, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from single_role.features.permissions.models import Permission, Role
from single_role.features.permissions.schemas import SyncResult
from single_role.utils import get_logger


log = get_logger(__name__)

PermissionIds = Union[int, Permission, Iterable[Union[int, Permission]]]
SyncRecords = Union[PermissionIds, Mapping[int, Dict[str, Any]]]


def parse_ids(ids: PermissionIds) -> List[int]:
    """Normalize an id, a Permission, or an iterable of either to a list of ids."""
    if isinstance(ids, (int, Permission)):
        ids = [ids]
    return [item.id if isinstance(item, Permission) else int(item) for item in ids]


def parse_records(ids: SyncRecords) -> Dict[int, Dict[str, Any]]:
    """Normalize sync input to ``{permission_id: pivot attributes}``."""
    if isinstance(ids, Mapping):
        return {int(key): dict(value or {}) for key, value in ids.items()}
    return {permission_id: {} for permission_id in parse_ids(ids)}


class PermissionStore(Protocol):
    """Association store and entity repository consumed by the resolver."""

    async def fetch_associated(self, entity) -> Sequence[Permission]: ...

    async def attach(
        self,
        entity,
        ids: PermissionIds,
        attributes: Optional[Dict[str, Any]] = None,
        touch: bool = True,
    ) -> None: ...

    async def detach(self, entity, ids: Optional[PermissionIds] = None, touch: bool = True) -> int: ...

    async def sync(self, entity, ids: SyncRecords, detaching: bool = True) -> SyncResult: ...

    def get_identity(self, entity) -> Any: ...

    def is_role(self, entity) -> bool: ...

    async def get_role(self, entity) -> Optional[Role]: ...

    async def set_role(self, entity, role: Optional[Role]) -> None: ...


class SQLAlchemyPermissionStore:
    """PermissionStore backed by the grant tables declared on each holder model."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Entity repository
    # ------------------------------------------------------------------

    def get_identity(self, entity) -> Any:
        return entity.id

    def is_role(self, entity) -> bool:
        return isinstance(entity, Role)

    async def get_role(self, entity) -> Optional[Role]:
        role_id = getattr(entity, "role_id", None)
        if role_id is None:
            return None
        return await self.db.get(Role, role_id)

    async def set_role(self, entity, role: Optional[Role]) -> None:
        entity.role_id = role.id if role is not None else None
        await self.db.flush()

    # ------------------------------------------------------------------
    # Association store
    # ------------------------------------------------------------------

    def _grants(self, entity):
        model = type(entity)
        table = model.__permission_table__
        return table, table.c[model.__permission_owner_column__]

    def _pivot(self, table, attributes: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        attributes = dict(attributes or {})
        unknown = sorted(set(attributes) - set(table.c.keys()))
        if unknown:
            raise ValueError(f"Unknown pivot columns for {table.name}: {unknown}")
        return attributes

    async def _current_ids(self, entity) -> List[int]:
        table, owner = self._grants(entity)
        result = await self.db.execute(
            select(table.c.permission_id).where(owner == self.get_identity(entity))
        )
        return list(result.scalars().all())

    async def fetch_associated(self, entity) -> List[Permission]:
        table, owner = self._grants(entity)
        stmt = (
            select(Permission)
            .join(table, table.c.permission_id == Permission.id)
            .where(owner == self.get_identity(entity))
            .order_by(Permission.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def attach(
        self,
        entity,
        ids: PermissionIds,
        attributes: Optional[Dict[str, Any]] = None,
        touch: bool = True,
    ) -> None:
        table, owner = self._grants(entity)
        entity_id = self.get_identity(entity)
        attributes = self._pivot(table, attributes)
        rows = [
            {owner.name: entity_id, "permission_id": permission_id, **attributes}
            for permission_id in parse_ids(ids)
        ]
        if rows:
            await self.db.execute(insert(table), rows)
        if touch:
            entity.touch()
        await self.db.flush()
        log.debug(f"Attached permissions {[row['permission_id'] for row in rows]} to {type(entity).__name__}:{entity_id}")

    async def detach(self, entity, ids: Optional[PermissionIds] = None, touch: bool = True) -> int:
        table, owner = self._grants(entity)
        entity_id = self.get_identity(entity)
        stmt = delete(table).where(owner == entity_id)
        if ids is not None:
            permission_ids = parse_ids(ids)
            if not permission_ids:
                return 0
            stmt = stmt.where(table.c.permission_id.in_(permission_ids))

        result = await self.db.execute(stmt)
        if touch:
            entity.touch()
        await self.db.flush()
        log.debug(f"Detached {result.rowcount} permissions from {type(entity).__name__}:{entity_id}")
        return result.rowcount

    async def sync(self, entity, ids: SyncRecords, detaching: bool = True) -> SyncResult:
        """
        Make the holder's grants match ``ids``.

        Args:
            entity: User or Role
            ids: Permission ids, or a mapping of permission id to pivot attributes
            detaching: Remove grants not listed in ``ids``

        Returns:
            SyncResult listing attached, detached and updated permission ids
        """
        table, owner = self._grants(entity)
        entity_id = self.get_identity(entity)
        records = {
            permission_id: self._pivot(table, attributes)
            for permission_id, attributes in parse_records(ids).items()
        }
        current = set(await self._current_ids(entity))
        changes = SyncResult()

        if detaching:
            stale = sorted(current - records.keys())
            if stale:
                await self.detach(entity, stale, touch=False)
                changes.detached = stale

        for permission_id, attributes in records.items():
            if permission_id not in current:
                await self.db.execute(
                    insert(table).values({owner.name: entity_id, "permission_id": permission_id, **attributes})
                )
                changes.attached.append(permission_id)
            elif attributes:
                await self.db.execute(
                    update(table)
                    .where(owner == entity_id, table.c.permission_id == permission_id)
                    .values(**attributes)
                )
                changes.updated.append(permission_id)

        if changes.attached or changes.detached or changes.updated:
            entity.touch()
        await self.db.flush()
        log.debug(f"Synced permissions of {type(entity).__name__}:{entity_id}: {changes.model_dump()}")
        return changes
