"""
Key-value store boundary with per-key TTL and atomic compare-and-set.

The reservation core owns no persistence engine. Everything it needs from
the shared backing store is expressed by the LeaseStore primitives below;
InMemoryLeaseStore is the single-process reference backend used by tests
and the console demo.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from reservation_core.utils import utc_now

logger = logging.getLogger(__name__)


class LeaseStore(ABC):
    """Atomic primitives over a TTL-capable key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the live value or None."""

    @abstractmethod
    def set(self, key: str, value: str, ttl_ms: Optional[int] = None, nx: bool = False) -> bool:
        """Write a value. With ``nx`` the write only happens if the key is absent."""

    @abstractmethod
    def compare_and_set(
        self, key: str, expected: Optional[str], new: Optional[str], ttl_ms: Optional[int] = None
    ) -> bool:
        """
        Atomically replace ``expected`` with ``new``.

        ``expected=None`` requires the key to be absent; ``new=None``
        deletes the key. Returns False without writing when the current
        value differs from ``expected``.
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a key. Returns False if it was already gone."""

    @abstractmethod
    def expire(self, key: str, ttl_ms: int) -> bool:
        """Reset a key's TTL. Returns False if the key is gone."""

    @abstractmethod
    def incr(self, key: str, ttl_ms: Optional[int] = None) -> int:
        """Increment an integer counter, creating it at 1."""

    @abstractmethod
    def scan(self, prefix: str) -> list[str]:
        """List live keys starting with ``prefix``. Not for request paths."""


class InMemoryLeaseStore(LeaseStore):
    """Thread-safe dict-backed store. TTLs are evaluated against ``clock``."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[datetime]]] = {}
        self._lock = threading.Lock()

    def _deadline(self, ttl_ms: Optional[int]) -> Optional[datetime]:
        if ttl_ms is None:
            return None
        return self._clock() + timedelta(milliseconds=ttl_ms)

    def _live_value(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and deadline <= self._clock():
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live_value(key)

    def set(self, key: str, value: str, ttl_ms: Optional[int] = None, nx: bool = False) -> bool:
        with self._lock:
            if nx and self._live_value(key) is not None:
                return False
            self._data[key] = (value, self._deadline(ttl_ms))
            return True

    def compare_and_set(
        self, key: str, expected: Optional[str], new: Optional[str], ttl_ms: Optional[int] = None
    ) -> bool:
        with self._lock:
            if self._live_value(key) != expected:
                return False
            if new is None:
                self._data.pop(key, None)
            else:
                self._data[key] = (new, self._deadline(ttl_ms))
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._live_value(key) is not None
            self._data.pop(key, None)
            return existed

    def expire(self, key: str, ttl_ms: int) -> bool:
        with self._lock:
            value = self._live_value(key)
            if value is None:
                return False
            self._data[key] = (value, self._deadline(ttl_ms))
            return True

    def incr(self, key: str, ttl_ms: Optional[int] = None) -> int:
        with self._lock:
            current = int(self._live_value(key) or 0) + 1
            deadline = self._deadline(ttl_ms) if ttl_ms is not None else None
            if ttl_ms is None and key in self._data:
                deadline = self._data[key][1]
            self._data[key] = (str(current), deadline)
            return current

    def scan(self, prefix: str) -> list[str]:
        with self._lock:
            return [
                key for key in list(self._data)
                if key.startswith(prefix) and self._live_value(key) is not None
            ]
