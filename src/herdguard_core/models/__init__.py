"""Domain models for herdguard."""

from herdguard_core.models.events import CacheEvent, CacheEventType
from herdguard_core.models.options import CacheItem, FetchOptions

__all__ = [
    "CacheEvent",
    "CacheEventType",
    "CacheItem",
    "FetchOptions",
]
