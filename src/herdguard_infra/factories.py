"""Factory functions for creating backends from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from herdguard_core.interfaces.backend import CacheBackend

if TYPE_CHECKING:
    from herdguard_core.config.settings import Settings


def create_backend(settings: Settings) -> CacheBackend:
    """Create a storage backend based on settings.

    Returns ``RedisCacheBackend`` when ``settings.backend == "redis"``,
    otherwise a fresh ``MemoryCacheBackend``.
    """
    if settings.backend == "redis":
        from redis.asyncio import Redis

        from herdguard_infra.backends.redis_backend import RedisCacheBackend

        client = Redis.from_url(settings.redis_url)
        return RedisCacheBackend(client, prefix=settings.redis_namespace)

    from herdguard_infra.backends.memory_backend import MemoryCacheBackend

    return MemoryCacheBackend()
