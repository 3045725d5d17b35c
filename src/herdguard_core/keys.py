"""Namespaced key construction."""

from __future__ import annotations

from herdguard_core.constants import KEY_DELIMITER, LOCK_KEY_PREFIX, STALE_KEY_PREFIX
from herdguard_core.exceptions import InvalidKeyError


def compose_key(prefix: str | None, version: str | None, key: str | None) -> str:
    """Join the non-empty segments of (prefix, version, key) with ``:``.

    Segments that already contain the delimiter are not escaped, so
    ("a:b", "", "c") and ("a", "b", "c") compose to the same key.
    """
    return KEY_DELIMITER.join(segment for segment in (prefix, version, key) if segment)


def lock_key(full_key: str) -> str:
    """Key of the single-flight lock guarding *full_key*."""
    return f"{LOCK_KEY_PREFIX}{full_key}"


def stale_key(full_key: str) -> str:
    """Key of the long-lived last-known-good copy of *full_key*."""
    return f"{STALE_KEY_PREFIX}{full_key}"


def validate_key(key: str) -> None:
    """Reject empty logical keys and keys containing control characters."""
    if not key:
        msg = "Cache key must be a non-empty string"
        raise InvalidKeyError(msg)
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in key):
        msg = f"Cache key contains control characters: {key!r}"
        raise InvalidKeyError(msg)
