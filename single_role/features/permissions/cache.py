"""
Process-wide cache of effective permission sets.

Entries are keyed by the holder's runtime type and identity, so a User and a
Role sharing id 1 never collide. An entry is a snapshot: it is replaced
wholesale whenever the holder's grants change and is never patched in place.
"""
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from single_role.features.permissions.schemas import PermissionSnapshot


PermissionSet = Tuple[PermissionSnapshot, ...]


@dataclass(frozen=True)
class CacheKey:
    entity_type: type
    entity_id: Any

    def __str__(self) -> str:
        return f"{self.entity_type.__name__}:{self.entity_id}"


class PermissionCache:
    """
    Mapping of ``CacheKey`` to a permission set snapshot.

    No TTL and no eviction. The map is guarded by a lock so readers never see a
    half-written dict; two writers racing for the same key simply leave the
    last snapshot in place.
    """

    def __init__(self):
        self._entries: Dict[CacheKey, PermissionSet] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> Optional[PermissionSet]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: CacheKey, permissions: PermissionSet) -> PermissionSet:
        with self._lock:
            self._entries[key] = permissions
        return permissions

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
