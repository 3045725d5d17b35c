"""In-process implementation of CacheBackend."""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from herdguard_core.interfaces.backend import MISSING, Missing

logger = structlog.get_logger()


@dataclass(slots=True)
class _Entry:
    """Stored value with an optional monotonic expiry instant."""

    value: Any
    expires_at: float | None = None


class MemoryCacheBackend:
    """Single-node backend keeping entries and locks in process memory.

    Expiry is lazy: an entry past its expiry instant is treated as absent
    and evicted on read. ``sweep`` drops expired entries eagerly but is
    only a memory-hygiene aid.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize empty stores; *clock* must be monotonic and in seconds."""
        self._clock = clock
        self._store: dict[str, _Entry] = {}
        self._locks: dict[str, float] = {}
        self._mutex = threading.Lock()

    def _expired(self, expires_at: float | None, now: float) -> bool:
        return expires_at is not None and expires_at <= now

    async def get(self, key: str) -> Any | Missing:
        """Retrieve a value by key, evicting it if expired."""
        with self._mutex:
            entry = self._store.get(key)
            if entry is None:
                return MISSING
            if self._expired(entry.expires_at, self._clock()):
                del self._store[key]
                return MISSING
            return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store a value; no TTL (or 0) means it never expires."""
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._mutex:
            self._store[key] = _Entry(value=value, expires_at=expires_at)

    async def delete(self, key: str) -> None:
        """Delete a key (no-op if absent)."""
        with self._mutex:
            self._store.pop(key, None)

    async def try_acquire_lock(self, key: str, ttl_seconds: float) -> bool:
        """Take the lock unless a live holder exists; check and set under one mutex."""
        with self._mutex:
            now = self._clock()
            held_until = self._locks.get(key)
            if held_until is not None and not self._expired(held_until, now):
                return False
            self._locks[key] = now + ttl_seconds
            return True

    async def release_lock(self, key: str) -> None:
        """Release a lock (no-op if not held).

        Unconditional: a caller whose lock already expired releases whoever
        holds it now. Every caller shares this instance, so there is no
        holder identity to compare.
        """
        with self._mutex:
            self._locks.pop(key, None)

    async def clear_namespace(self) -> None:
        """Drop every entry and lock held by this instance."""
        with self._mutex:
            self._store.clear()
            self._locks.clear()

    def sweep(self) -> int:
        """Remove expired entries and locks, returning how many were dropped."""
        with self._mutex:
            now = self._clock()
            expired_keys = [k for k, e in self._store.items() if self._expired(e.expires_at, now)]
            for key in expired_keys:
                del self._store[key]
            expired_locks = [k for k, until in self._locks.items() if until <= now]
            for key in expired_locks:
                del self._locks[key]
        removed = len(expired_keys) + len(expired_locks)
        if removed:
            logger.debug(
                "memory_backend_swept", entries=len(expired_keys), locks=len(expired_locks)
            )
        return removed

    async def sweep_periodically(self, interval_seconds: float) -> None:
        """Sweep every *interval_seconds* until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet evicted."""
        return len(self._store)
