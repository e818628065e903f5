"""
Availability cache with scoped, versioned invalidation.

Each (store, date) scope has a version counter that is embedded in every
cache key written for that scope. Invalidation bumps the counter, so stale
entries become unreachable without scanning or flushing anything outside
the scope; they age out through their own TTL.
"""

import logging
from datetime import date
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from reservation_core.config import settings
from reservation_core.schemas.availability_schema import Slot
from reservation_core.store.lease_store import LeaseStore

logger = logging.getLogger(__name__)

_SLOTS = TypeAdapter(list[Slot])


class SlotCache:
    """Caches GetAvailableSlots results per (store, date, menu, resource)."""

    def __init__(
        self,
        store: LeaseStore,
        key_prefix: str = settings.backend.key_prefix,
        ttl_minutes: int = settings.availability.cache_ttl_minutes,
    ) -> None:
        self._store = store
        self._prefix = f"{key_prefix}:avail"
        self._ttl_ms = ttl_minutes * 60 * 1000

    def _version_key(self, store_id: int, day: date) -> str:
        return f"{self._prefix}:ver:{store_id}:{day.isoformat()}"

    def version(self, store_id: int, day: date) -> int:
        """Current version of the (store, date) scope."""
        return int(self._store.get(self._version_key(store_id, day)) or 0)

    def _entry_key(
        self, store_id: int, day: date, version: int, menu_id: int, resource_id: Optional[int]
    ) -> str:
        resource = "any" if resource_id is None else str(resource_id)
        return f"{self._prefix}:slots:{store_id}:{day.isoformat()}:v{version}:{menu_id}:{resource}"

    def get(
        self,
        store_id: int,
        day: date,
        menu_id: int,
        resource_id: Optional[int] = None,
        version: Optional[int] = None,
    ) -> Optional[list[Slot]]:
        if version is None:
            version = self.version(store_id, day)
        raw = self._store.get(self._entry_key(store_id, day, version, menu_id, resource_id))
        if raw is None:
            return None
        try:
            return _SLOTS.validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable availability cache entry for store %s", store_id)
            return None

    def put(
        self,
        store_id: int,
        day: date,
        menu_id: int,
        resource_id: Optional[int],
        slots: list[Slot],
        version: Optional[int] = None,
    ) -> None:
        """
        Store ``slots`` under ``version``.

        Pass the version read before the slots were computed: if the scope
        was invalidated meanwhile, the entry lands under the old version and
        is never served.
        """
        if version is None:
            version = self.version(store_id, day)
        key = self._entry_key(store_id, day, version, menu_id, resource_id)
        self._store.set(key, _SLOTS.dump_json(slots).decode(), ttl_ms=self._ttl_ms)

    def invalidate(self, store_id: int, day: date) -> int:
        """Make every cached entry for (store, date) unreachable. Returns the new version."""
        version = self._store.incr(self._version_key(store_id, day))
        logger.debug("Availability cache for store %s on %s now at v%d", store_id, day, version)
        return version
