"""Redis-backed implementation of CacheBackend."""

from __future__ import annotations

import json
import os
import socket
import uuid
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from herdguard_core.constants import REDIS_SCAN_COUNT
from herdguard_core.exceptions import (
    CacheBackendError,
    CacheConfigError,
    CacheSerializationError,
)
from herdguard_core.interfaces.backend import MISSING, Missing


# Deletes the lock only while it still holds our token, so a holder whose lock
# expired cannot release the next holder's lock.
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _lock_token() -> str:
    """Unique per acquisition; the host:pid part is for operators inspecting Redis."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex}"


class RedisCacheBackend:
    """Shared cache backed by Redis, storing JSON-encoded values.

    Keys are stored under ``prefix:`` when a prefix is configured; the
    prefix is also the namespace ``clear_namespace`` is confined to.

    Locks store a fresh token per acquisition and are released with a
    compare-and-delete script. Tokens are tracked per instance and key, so
    two callers sharing one instance can still release each other's lock
    after it expired; callers in other processes cannot.
    """

    def __init__(self, redis: Redis, prefix: str = "") -> None:  # type: ignore[type-arg]
        """Initialize with a redis-py asyncio client and an optional key prefix."""
        self._redis = redis
        self._prefix = prefix
        self._tokens: dict[str, str] = {}
        self._release_script = redis.register_script(_RELEASE_LOCK_SCRIPT)

    @property
    def prefix(self) -> str:
        """Backend-level key prefix."""
        return self._prefix

    def _key(self, key: str) -> str:
        """Apply the backend prefix to a key."""
        return f"{self._prefix}:{key}" if self._prefix else key

    async def get(self, key: str) -> Any | Missing:
        """Retrieve and decode a value by key."""
        try:
            raw = await self._redis.get(self._key(key))
        except RedisError as exc:
            raise CacheBackendError(f"Redis get operation failed: {exc}") from exc
        if raw is None:
            return MISSING
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise CacheSerializationError(f"Failed to parse cached value for {key}: {exc}") from exc

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Encode and store a value; no TTL (or 0) means no expiry."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise CacheSerializationError(f"Failed to stringify value for {key}: {exc}") from exc
        try:
            if ttl_seconds:
                await self._redis.set(
                    name=self._key(key), value=payload, px=max(1, int(ttl_seconds * 1000))
                )
            else:
                await self._redis.set(name=self._key(key), value=payload)
        except RedisError as exc:
            raise CacheBackendError(f"Redis set operation failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        """Delete a key from the cache."""
        try:
            await self._redis.delete(self._key(key))
        except RedisError as exc:
            raise CacheBackendError(f"Redis delete operation failed: {exc}") from exc

    async def try_acquire_lock(self, key: str, ttl_seconds: float) -> bool:
        """Take the lock with a single SET NX PX round-trip."""
        token = _lock_token()
        try:
            acquired = await self._redis.set(
                name=self._key(key),
                value=token,
                nx=True,
                px=max(1, int(ttl_seconds * 1000)),
            )
        except RedisError as exc:
            raise CacheBackendError(f"Redis lock operation failed: {exc}") from exc
        if not acquired:
            return False
        self._tokens[key] = token
        return True

    async def release_lock(self, key: str) -> None:
        """Release a lock this instance holds; a lock it does not hold is left alone."""
        token = self._tokens.pop(key, None)
        if token is None:
            return
        try:
            await self._release_script(keys=[self._key(key)], args=[token])
        except RedisError as exc:
            raise CacheBackendError(f"Redis unlock operation failed: {exc}") from exc

    async def clear_namespace(self) -> None:
        """Delete every key under the backend prefix using a SCAN cursor."""
        if not self._prefix:
            msg = "Refusing to clear all keys: prefix is required"
            raise CacheConfigError(msg)
        pattern = f"{self._prefix}:*"
        cursor: int | str = 0
        try:
            while True:
                cursor, keys = await self._redis.scan(
                    cursor=cursor, match=pattern, count=REDIS_SCAN_COUNT
                )
                if keys:
                    await self._redis.delete(*keys)
                if int(cursor) == 0:
                    break
        except RedisError as exc:
            raise CacheBackendError(f"Redis clear operation failed: {exc}") from exc

    async def close(self) -> None:
        """Close the underlying client."""
        await self._redis.aclose()  # type: ignore[attr-defined]
