"""Lifecycle events emitted by the fetch orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class CacheEventType(StrEnum):
    """Transitions a fetch reports to its event reporter."""

    HIT = "HIT"
    MISS = "MISS"
    LOCK = "LOCK"
    WAIT = "WAIT"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class CacheEvent:
    """A single tagged event; ``error`` is set only for ERROR events."""

    type: CacheEventType
    key: str
    error: BaseException | None = None
