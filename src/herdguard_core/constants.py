"""Shared constants for herdguard."""

from __future__ import annotations

# Key namespacing
KEY_DELIMITER = ":"
LOCK_KEY_PREFIX = "lock:"
STALE_KEY_PREFIX = "stale:"

# Per-call fetch defaults
DEFAULT_TTL_SECONDS = 300.0
DEFAULT_LOCK_TIMEOUT_MS = 5000
DEFAULT_STALE_TTL_SECONDS = 3600.0

# Waiter poll interval: starts short, grows multiplicatively, capped
DEFAULT_POLL_INITIAL_SECONDS = 0.05
DEFAULT_POLL_MAX_SECONDS = 0.5
DEFAULT_POLL_GROWTH = 1.5

# Local acceleration layer
DEFAULT_LOCAL_CACHE_MAX_ENTRIES = 1024

# Redis
REDIS_SCAN_COUNT = 100
