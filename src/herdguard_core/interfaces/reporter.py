"""Event reporter boundary."""

from __future__ import annotations

from collections.abc import Callable

from herdguard_core.models.events import CacheEvent

EventReporter = Callable[[CacheEvent], None]
"""Synchronous sink for cache lifecycle events. Must not raise."""


def noop_reporter(event: CacheEvent) -> None:
    """Discard the event."""
