"""Short-lived in-process copies of fetched values."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, NamedTuple

from cachetools import TLRUCache

from herdguard_core.constants import DEFAULT_LOCAL_CACHE_MAX_ENTRIES
from herdguard_core.interfaces.backend import MISSING, Missing


class _LocalEntry(NamedTuple):
    value: Any
    lifetime: float


def _expires_at(_key: str, entry: _LocalEntry, now: float) -> float:
    return now + entry.lifetime


class LocalCache:
    """Time-bounded, size-bounded map in front of the shared backend.

    Never authoritative: a copy lives for ``ttl_seconds`` or for the TTL it
    was stored with, whichever is shorter.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = DEFAULT_LOCAL_CACHE_MAX_ENTRIES,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._cache: TLRUCache[str, _LocalEntry] = TLRUCache(
            maxsize=max_entries, ttu=_expires_at, timer=timer
        )
        self._mutex = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str) -> Any | Missing:
        """Return the live local copy of *key*, or ``MISSING``."""
        with self._mutex:
            entry = self._cache.get(key)
        return MISSING if entry is None else entry.value

    def put(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Remember *value* for at most *ttl_seconds* (None or 0: the local TTL)."""
        lifetime = min(self._ttl_seconds, ttl_seconds) if ttl_seconds else self._ttl_seconds
        with self._mutex:
            self._cache[key] = _LocalEntry(value, lifetime)

    def discard(self, key: str) -> None:
        """Forget *key* (no-op if absent)."""
        with self._mutex:
            self._cache.pop(key, None)

    def clear(self) -> None:
        """Forget everything."""
        with self._mutex:
            self._cache.clear()

    def __len__(self) -> int:
        with self._mutex:
            return len(self._cache)
