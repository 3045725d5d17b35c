"""Custom exception hierarchy for herdguard."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Closed set of failure kinds a fetch can surface to its caller."""

    BACKEND = "backend"
    SERIALIZATION = "serialization"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"
    ORIGIN = "origin"


class CacheError(Exception):
    """Base exception for all herdguard errors."""

    kind: ErrorKind = ErrorKind.BACKEND


class CacheBackendError(CacheError):
    """Raised when the store itself fails (transport, availability)."""

    kind = ErrorKind.BACKEND


class CacheSerializationError(CacheError):
    """Raised when a payload cannot be encoded or decoded."""

    kind = ErrorKind.SERIALIZATION


class CacheTimeoutError(CacheError):
    """Raised when a waiter gives up before the value appears."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, key: str, timeout_ms: int) -> None:
        """Record the logical key and the configured wait budget."""
        super().__init__(f"Timeout waiting for {key} ({timeout_ms}ms)")
        self.key = key
        self.timeout_ms = timeout_ms


class CacheConfigError(CacheError):
    """Raised when the handler or backend is set up incorrectly."""

    kind = ErrorKind.CONFIGURATION


class UnsupportedOperationError(CacheConfigError):
    """Raised when a backend lacks an optional capability."""


class InvalidKeyError(CacheConfigError, ValueError):
    """Raised when a logical key is empty or contains control characters."""


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to its failure kind; foreign errors come from the origin."""
    if isinstance(exc, CacheError):
        return exc.kind
    return ErrorKind.ORIGIN
