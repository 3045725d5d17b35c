"""Per-call fetch options and warm-start items."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from herdguard_core.constants import (
    DEFAULT_LOCK_TIMEOUT_MS,
    DEFAULT_STALE_TTL_SECONDS,
    DEFAULT_TTL_SECONDS,
)


class FetchOptions(BaseModel):
    """Configuration for a single fetch, overlaid on handler-level defaults."""

    model_config = ConfigDict(frozen=True)

    ttl_seconds: float = Field(
        default=DEFAULT_TTL_SECONDS,
        ge=0,
        description="Primary entry TTL in seconds (0 = never expires)",
    )
    lock_timeout_ms: int = Field(
        default=DEFAULT_LOCK_TIMEOUT_MS,
        gt=0,
        description="Lock TTL and maximum time a waiter polls, in milliseconds",
    )
    stale_ttl_seconds: float = Field(
        default=DEFAULT_STALE_TTL_SECONDS,
        ge=0,
        description="Stale copy TTL in seconds, used only with fallback enabled",
    )

    @property
    def lock_timeout_seconds(self) -> float:
        """Lock timeout expressed in seconds."""
        return self.lock_timeout_ms / 1000

    @property
    def writes_stale_copy(self) -> bool:
        """A stale copy is only worth keeping when it outlives the primary entry."""
        return self.stale_ttl_seconds > self.ttl_seconds

    def merged_over(self, defaults: FetchOptions) -> FetchOptions:
        """Return *defaults* updated with only the fields set explicitly here."""
        overrides = self.model_dump(include=self.model_fields_set)
        return defaults.model_copy(update=overrides)


class CacheItem(BaseModel):
    """An entry written directly to the backend during warm start."""

    key: str = Field(min_length=1, description="Logical cache key")
    value: Any = Field(description="Value to store")
    ttl_seconds: float | None = Field(
        default=None, ge=0, description="Primary TTL in seconds (None = never expires)"
    )
    stale_ttl_seconds: float | None = Field(
        default=None, ge=0, description="Stale copy TTL; written only when above ttl_seconds"
    )
