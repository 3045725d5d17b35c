"""Event reporter sinks: structured logging, counting, and fan-out."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

import structlog

from herdguard_core.interfaces.reporter import EventReporter
from herdguard_core.models.events import CacheEvent, CacheEventType

_EVENT_NAMES: dict[CacheEventType, str] = {
    CacheEventType.HIT: "cache_hit",
    CacheEventType.MISS: "cache_miss",
    CacheEventType.LOCK: "cache_lock",
    CacheEventType.WAIT: "cache_wait",
    CacheEventType.ERROR: "cache_error",
}


class LoggingReporter:
    """Report cache events through structlog.

    Lifecycle transitions log at debug; ERROR events log at warning with
    the error type and message so failures stand out without a debug level.
    """

    def __init__(self, logger: structlog.typing.FilteringBoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger("herdguard.events")

    def __call__(self, event: CacheEvent) -> None:
        name = _EVENT_NAMES[event.type]
        if event.error is None:
            self._logger.debug(name, key=event.key)
            return
        self._logger.warning(
            name,
            key=event.key,
            error_type=type(event.error).__name__,
            error=str(event.error),
        )


@dataclass
class EventCounter:
    """Accumulates every reported event and per-type counts."""

    events: list[CacheEvent] = field(default_factory=list)
    counts: Counter[CacheEventType] = field(default_factory=Counter)

    def __call__(self, event: CacheEvent) -> None:
        self.events.append(event)
        self.counts[event.type] += 1

    def types(self) -> list[CacheEventType]:
        """Event types in the order they were reported."""
        return [event.type for event in self.events]

    def summary(self) -> dict[str, int]:
        """Counts keyed by event name, including zero counts."""
        return {event_type.value: self.counts[event_type] for event_type in CacheEventType}

    def reset(self) -> None:
        self.events.clear()
        self.counts.clear()


def fanout(*reporters: EventReporter) -> EventReporter:
    """Combine several reporters into one that calls each in order."""

    def _report(event: CacheEvent) -> None:
        for reporter in reporters:
            reporter(event)

    return _report
