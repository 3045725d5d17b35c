"""Public interface re-exports for herdguard_core."""

from herdguard_core.interfaces.backend import MISSING, CacheBackend, Missing
from herdguard_core.interfaces.reporter import EventReporter, noop_reporter

__all__ = [
    "MISSING",
    "CacheBackend",
    "EventReporter",
    "Missing",
    "noop_reporter",
]
