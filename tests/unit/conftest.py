"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
from structlog.contextvars import clear_contextvars

from herdguard_core.models.options import FetchOptions
from herdguard_handler.handler import CacheHandler
from herdguard_handler.observability.reporters import EventCounter
from herdguard_infra.backends.memory_backend import MemoryCacheBackend
from tests.mocks.mock_backends import FAST_POLL, FakeClock
from tests.mocks.mock_settings import make_settings


@pytest.fixture
def mock_settings() -> MagicMock:
    """Return a MagicMock Settings with sensible defaults."""
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    """Return a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def memory_backend() -> MemoryCacheBackend:
    """Return an empty in-process backend on the real monotonic clock."""
    return MemoryCacheBackend()


@pytest.fixture
def counter() -> EventCounter:
    """Return a reporter that records every event."""
    return EventCounter()


@pytest.fixture
def handler(memory_backend: MemoryCacheBackend, counter: EventCounter) -> CacheHandler:
    """Return a handler over the memory backend with fast polling."""
    return CacheHandler(
        memory_backend,
        prefix="app",
        version="v1",
        reporter=counter,
        default_options=FetchOptions(lock_timeout_ms=1000),
        poll_policy=FAST_POLL,
    )


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Restore root logger handlers and drop bound log context after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.level = original_level
    clear_contextvars()
