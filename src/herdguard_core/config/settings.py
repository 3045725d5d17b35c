"""Application settings using pydantic-settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from herdguard_core.constants import (
    DEFAULT_LOCAL_CACHE_MAX_ENTRIES,
    DEFAULT_LOCK_TIMEOUT_MS,
    DEFAULT_POLL_GROWTH,
    DEFAULT_STALE_TTL_SECONDS,
    DEFAULT_TTL_SECONDS,
)
from herdguard_core.models.options import FetchOptions


class Settings(BaseSettings):
    """Central configuration for herdguard."""

    model_config = SettingsConfigDict(env_prefix="HERDGUARD_", env_file=".env")

    # --- Backend ---
    backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Storage medium: 'memory' for a single process, 'redis' for shared",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_namespace: str = Field(
        default="herdguard",
        description="Backend-level key prefix; required for clearing a Redis namespace",
    )

    # --- Handler ---
    key_prefix: str = Field(
        default="",
        description="Global prefix segment of every composed key",
    )
    key_version: str = Field(
        default="",
        description="Version segment of every composed key",
    )
    fallback_to_stale: bool = Field(
        default=False,
        description="Serve the last-known-good copy when the origin call fails",
    )

    # --- Fetch defaults ---
    default_ttl_seconds: float = Field(
        default=DEFAULT_TTL_SECONDS,
        ge=0,
        description="Primary entry TTL in seconds",
    )
    lock_timeout_ms: int = Field(
        default=DEFAULT_LOCK_TIMEOUT_MS,
        gt=0,
        description="Lock TTL and waiter timeout in milliseconds",
    )
    stale_ttl_seconds: float = Field(
        default=DEFAULT_STALE_TTL_SECONDS,
        ge=0,
        description="Stale copy TTL in seconds",
    )

    # --- Waiter polling ---
    poll_initial_ms: int = Field(
        default=50,
        gt=0,
        description="First delay between waiter polls in milliseconds",
    )
    poll_max_ms: int = Field(
        default=500,
        gt=0,
        description="Ceiling on the delay between waiter polls in milliseconds",
    )
    poll_growth: float = Field(
        default=DEFAULT_POLL_GROWTH,
        ge=1.0,
        description="Multiplier applied to the poll delay after each miss",
    )

    # --- Local acceleration layer ---
    local_cache_ttl_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Lifetime of in-process copies of fetched values (0 disables)",
    )
    local_cache_max_entries: int = Field(
        default=DEFAULT_LOCAL_CACHE_MAX_ENTRIES,
        gt=0,
        description="Maximum number of in-process copies",
    )

    # --- Logging ---
    log_level: str = Field(
        default="INFO",
        description="Root log level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log renderer: 'console' for humans, 'json' for collectors",
    )

    @model_validator(mode="after")
    def validate_poll_config(self) -> Settings:
        """Ensure the poll ceiling is not below the first delay."""
        if self.poll_max_ms < self.poll_initial_ms:
            msg = "poll_max_ms must be greater than or equal to poll_initial_ms"
            raise ValueError(msg)
        return self

    def fetch_options(self) -> FetchOptions:
        """Handler-level default fetch options."""
        return FetchOptions(
            ttl_seconds=self.default_ttl_seconds,
            lock_timeout_ms=self.lock_timeout_ms,
            stale_ttl_seconds=self.stale_ttl_seconds,
        )
