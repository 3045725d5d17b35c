"""Structured logging for herdguard: structlog over stdlib logging plus cache context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

from herdguard_core.keys import compose_key

if TYPE_CHECKING:
    from herdguard_core.config.settings import Settings

# redis-py logs every connection and command at debug
_QUIET_LOGGERS = ("redis",)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderers(log_format: str) -> list[structlog.types.Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def configure_logging(settings: Settings) -> None:
    """Route structlog and stdlib logging through one renderer chosen by ``log_format``.

    Entries carry the logger name so cache events (``herdguard.events``)
    stand apart from backend and CLI logs, and whatever
    ``bind_cache_context`` bound is merged into every entry.
    """
    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderers(settings.log_format),
        ],
        foreign_pre_chain=shared,
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    level = _resolve_level(settings.log_level)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_cache_context(settings: Settings, **values: object) -> None:
    """Tag subsequent log entries with the backend and key namespace in use.

    Replaces any previously bound context. Extra *values* (e.g. the CLI
    command) are bound alongside.
    """
    clear_contextvars()
    bind_contextvars(
        backend=settings.backend,
        namespace=compose_key(settings.key_prefix, settings.key_version, None) or "-",
        **values,
    )


def _resolve_level(level_name: str) -> int:
    """Level number for a level name; unknown names fall back to INFO."""
    return logging.getLevelNamesMapping().get(level_name.upper(), logging.INFO)
