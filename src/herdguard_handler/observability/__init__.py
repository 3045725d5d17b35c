"""Observability: structured logging and cache event reporters."""

from herdguard_handler.observability.logging import (
    bind_cache_context,
    configure_logging,
)
from herdguard_handler.observability.reporters import (
    EventCounter,
    LoggingReporter,
    fanout,
)

__all__ = [
    "EventCounter",
    "LoggingReporter",
    "bind_cache_context",
    "configure_logging",
    "fanout",
]
