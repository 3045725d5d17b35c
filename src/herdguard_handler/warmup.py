"""Warm-start hooks: bulk pre-population and namespace clearing."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from herdguard_core.exceptions import UnsupportedOperationError
from herdguard_core.keys import stale_key, validate_key
from herdguard_core.models.options import CacheItem

if TYPE_CHECKING:
    from herdguard_handler.handler import CacheHandler

logger = structlog.get_logger()


async def _write_item(handler: CacheHandler, item: CacheItem) -> None:
    validate_key(item.key)
    full_key = handler.full_key(item.key)
    await handler.backend.set(full_key, item.value, item.ttl_seconds)
    handler.discard_local(full_key)
    if item.stale_ttl_seconds and item.stale_ttl_seconds > (item.ttl_seconds or 0):
        await handler.backend.set(stale_key(full_key), item.value, item.stale_ttl_seconds)


async def register_initial_cache(handler: CacheHandler, items: Iterable[CacheItem]) -> int:
    """Write *items* straight to the backend, bypassing locks and origins.

    Pre-population is not fetching, so single-flight does not apply: each
    item is set concurrently under its namespaced key, plus a stale copy
    when its stale TTL outlives the primary TTL. The handler's local copy
    of each written key is dropped so the next fetch sees the new value.
    Returns the number of items written; the first failing write propagates.
    """
    batch = list(items)
    if not batch:
        return 0
    await asyncio.gather(*(_write_item(handler, item) for item in batch))
    logger.info("cache_warmed", items=len(batch), prefix=handler.prefix, version=handler.version)
    return len(batch)


async def clear_cache(handler: CacheHandler) -> None:
    """Drop every entry in the handler backend's namespace.

    Raises ``UnsupportedOperationError`` when the backend cannot clear.
    """
    clear = getattr(handler.backend, "clear_namespace", None)
    if clear is None:
        msg = f"{type(handler.backend).__name__} does not support the clear operation"
        raise UnsupportedOperationError(msg)
    await clear()
    handler.clear_local_cache()
    logger.info("cache_cleared", backend=type(handler.backend).__name__)
