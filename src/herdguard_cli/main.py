"""CLI entrypoint using typer."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog
import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.table import Table

from herdguard_core.config.settings import Settings
from herdguard_core.exceptions import CacheError
from herdguard_core.interfaces.backend import MISSING
from herdguard_core.models.options import CacheItem, FetchOptions
from herdguard_handler.handler import CacheHandler
from herdguard_handler.observability import (
    EventCounter,
    LoggingReporter,
    bind_cache_context,
    configure_logging,
    fanout,
)
from herdguard_handler.warmup import clear_cache, register_initial_cache
from herdguard_infra.factories import create_backend

app = typer.Typer(
    name="herdguard",
    help="Single-flight cache-aside access layer for shared key-value stores",
)
console = Console()
logger = structlog.get_logger()

_ITEMS_ADAPTER = TypeAdapter(list[CacheItem])


def _load_settings(verbose: bool, command: str) -> Settings:
    """Read settings from the environment, configure logging and bind the cache context."""
    settings = Settings()
    if verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)
    bind_cache_context(settings, command=command)
    return settings


def _fail(exc: Exception) -> typer.Exit:
    """Print a cache error and build the exit to raise."""
    console.print(f"[red]Error:[/red] {exc}")
    return typer.Exit(code=1)


async def _close(handler: CacheHandler) -> None:
    close = getattr(handler.backend, "close", None)
    if close is not None:
        await close()


@app.command()
def warm(
    items_file: Path = typer.Argument(
        ..., help="JSON file with a list of cache items", exists=True
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Pre-populate the cache from a JSON list of {key, value, ttl_seconds, stale_ttl_seconds}."""
    try:
        items = _ITEMS_ADAPTER.validate_json(items_file.read_text())
    except ValidationError as exc:
        console.print(f"[red]Error:[/red] invalid items file: {exc.error_count()} error(s)")
        raise typer.Exit(code=1) from exc

    settings = _load_settings(verbose, "warm")
    handler = CacheHandler.from_settings(settings, reporter=LoggingReporter())

    async def _warm() -> int:
        try:
            return await register_initial_cache(handler, items)
        finally:
            await _close(handler)

    try:
        written = asyncio.run(_warm())
    except CacheError as exc:
        raise _fail(exc) from exc
    console.print(f"[bold green]Warmed:[/bold green] {written} item(s)")


@app.command()
def clear(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Delete every entry in the configured backend namespace."""
    settings = _load_settings(verbose, "clear")
    handler = CacheHandler.from_settings(settings)

    async def _clear() -> None:
        try:
            await clear_cache(handler)
        finally:
            await _close(handler)

    try:
        asyncio.run(_clear())
    except CacheError as exc:
        raise _fail(exc) from exc
    console.print("[bold green]Cache cleared[/bold green]")


@app.command()
def peek(
    key: str = typer.Argument(..., help="Logical cache key"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Show the cached value for a key without computing it."""
    settings = _load_settings(verbose, "peek")
    handler = CacheHandler.from_settings(settings)
    full_key = handler.full_key(key)

    async def _peek() -> Any:
        try:
            return await handler.backend.get(full_key)
        finally:
            await _close(handler)

    try:
        value = asyncio.run(_peek())
    except CacheError as exc:
        raise _fail(exc) from exc

    if value is MISSING:
        console.print(f"[yellow]{full_key}[/yellow] is not cached")
        raise typer.Exit(code=1)
    console.print(f"[bold]{full_key}[/bold] = {json.dumps(value)}")


@app.command()
def stampede(
    key: str = typer.Argument("stampede-demo", help="Logical cache key to hammer"),
    callers: int = typer.Option(50, "--callers", min=1, help="Concurrent callers"),
    work_seconds: float = typer.Option(
        0.2, "--work-seconds", min=0.0, help="Simulated origin latency"
    ),
    ttl: float = typer.Option(60.0, "--ttl", min=0.0, help="TTL of the computed value"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Simulate a thundering herd on a missing key and report how many origin calls ran."""
    settings = _load_settings(verbose, "stampede")
    counter = EventCounter()
    handler = CacheHandler.from_settings(settings, reporter=fanout(counter, LoggingReporter()))

    result = asyncio.run(_run_stampede(handler, key, callers, work_seconds, ttl))

    table = Table(title=f"Stampede on {handler.full_key(key)}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("callers", str(callers))
    table.add_row("origin calls", str(result["origin_calls"]))
    table.add_row("succeeded", str(result["succeeded"]))
    table.add_row("failed", str(result["failed"]))
    for name, count in counter.summary().items():
        table.add_row(f"{name} events", str(count))
    console.print(table)

    if result["failed"]:
        raise typer.Exit(code=1)


async def _run_stampede(
    handler: CacheHandler,
    key: str,
    callers: int,
    work_seconds: float,
    ttl: float,
) -> dict[str, int]:
    """Fire *callers* concurrent fetches at one key and tally the outcome."""
    origin_calls = 0

    async def origin() -> dict[str, object]:
        nonlocal origin_calls
        origin_calls += 1
        await asyncio.sleep(work_seconds)
        return {"computed_by": origin_calls}

    options = FetchOptions(ttl_seconds=ttl)
    try:
        outcomes = await asyncio.gather(
            *(handler.fetch(key, origin, options) for _ in range(callers)),
            return_exceptions=True,
        )
    finally:
        await _close(handler)

    failed = [o for o in outcomes if isinstance(o, BaseException)]
    for error in failed[:1]:
        logger.error("stampede_caller_failed", error_type=type(error).__name__, error=str(error))
    return {
        "origin_calls": origin_calls,
        "succeeded": callers - len(failed),
        "failed": len(failed),
    }


@app.command()
def version() -> None:
    """Show version."""
    console.print("herdguard v0.1.0")


if __name__ == "__main__":
    app()
