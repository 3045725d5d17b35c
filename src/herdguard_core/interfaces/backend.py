"""Abstract storage backend interface."""

from __future__ import annotations

from enum import Enum
from typing import Any, Final, Literal, Protocol, runtime_checkable


class _Missing(Enum):
    """Sentinel type for an absent cache entry."""

    MISSING = "MISSING"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing.MISSING
"""Returned by ``get`` when no live entry exists; distinct from every stored value."""

Missing = Literal[_Missing.MISSING]


@runtime_checkable
class CacheBackend(Protocol):
    """Capabilities a storage medium must provide to sit behind a cache handler.

    Every operation may fail independently. Implementations raise
    ``CacheBackendError`` when the store is unavailable and
    ``CacheSerializationError`` when a payload cannot be encoded or decoded.
    """

    async def get(self, key: str) -> Any | Missing:
        """Return the live value stored under *key*, or ``MISSING``."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store *value*; a ttl of ``None`` or 0 means no expiry."""
        ...

    async def delete(self, key: str) -> None:
        """Remove *key*; removing an absent key is not an error."""
        ...

    async def try_acquire_lock(self, key: str, ttl_seconds: float) -> bool:
        """Atomically take the lock at *key* for at most *ttl_seconds*."""
        ...

    async def release_lock(self, key: str) -> None:
        """Release the lock at *key*; releasing a free lock is not an error."""
        ...

    async def clear_namespace(self) -> None:
        """Drop every entry owned by this backend.

        Raises ``UnsupportedOperationError`` where the medium cannot do it.
        """
        ...
