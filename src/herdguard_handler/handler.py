"""Single-flight cache-aside fetch orchestration."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar, cast

import structlog

from herdguard_core.exceptions import CacheBackendError, CacheError, CacheTimeoutError
from herdguard_core.interfaces.backend import MISSING, CacheBackend
from herdguard_core.interfaces.reporter import EventReporter, noop_reporter
from herdguard_core.keys import compose_key, lock_key, stale_key, validate_key
from herdguard_core.models.events import CacheEvent, CacheEventType
from herdguard_core.models.options import FetchOptions
from herdguard_handler.local_cache import LocalCache
from herdguard_handler.polling import PollPolicy, wait_for_value

if TYPE_CHECKING:
    from herdguard_core.config.settings import Settings

R = TypeVar("R")

Origin = Callable[[], Awaitable[R]]

logger = structlog.get_logger()


def _as_cache_error(exc: Exception, action: str) -> CacheError:
    """Keep typed cache errors as they are; wrap anything else as a backend failure."""
    if isinstance(exc, CacheError):
        return exc
    wrapped = CacheBackendError(f"Failed to {action}: {exc}")
    wrapped.__cause__ = exc
    return wrapped


class CacheHandler:
    """Cache-aside access layer that lets one caller per key compute a missing value.

    The handler binds a backend to a key namespace (prefix and version), a
    stale-fallback policy, an event reporter and handler-level fetch
    defaults. It is immutable after construction and holds no state across
    fetches apart from the optional local cache; all coordination between
    concurrent callers goes through the backend's atomic lock.
    """

    def __init__(
        self,
        backend: CacheBackend,
        *,
        prefix: str = "",
        version: str = "",
        fallback_to_stale: bool = False,
        reporter: EventReporter = noop_reporter,
        default_options: FetchOptions | None = None,
        poll_policy: PollPolicy | None = None,
        local_cache: LocalCache | None = None,
    ) -> None:
        self._backend = backend
        self._prefix = prefix
        self._version = version
        self._fallback_to_stale = fallback_to_stale
        self._reporter = reporter
        self._default_options = default_options or FetchOptions()
        self._poll_policy = poll_policy or PollPolicy()
        self._local_cache = local_cache

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend: CacheBackend | None = None,
        reporter: EventReporter = noop_reporter,
    ) -> CacheHandler:
        """Build a handler from settings, creating the backend unless one is given."""
        if backend is None:
            from herdguard_infra.factories import create_backend

            backend = create_backend(settings)

        local_cache = None
        if settings.local_cache_ttl_seconds > 0:
            local_cache = LocalCache(
                settings.local_cache_ttl_seconds, settings.local_cache_max_entries
            )

        return cls(
            backend,
            prefix=settings.key_prefix,
            version=settings.key_version,
            fallback_to_stale=settings.fallback_to_stale,
            reporter=reporter,
            default_options=settings.fetch_options(),
            poll_policy=PollPolicy(
                initial_delay=settings.poll_initial_ms / 1000,
                max_delay=settings.poll_max_ms / 1000,
                growth=settings.poll_growth,
            ),
            local_cache=local_cache,
        )

    @property
    def backend(self) -> CacheBackend:
        """The storage backend this handler reads and writes."""
        return self._backend

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def version(self) -> str:
        return self._version

    @property
    def fallback_to_stale(self) -> bool:
        return self._fallback_to_stale

    @property
    def default_options(self) -> FetchOptions:
        return self._default_options

    def full_key(self, key: str) -> str:
        """Namespaced backend key for a logical key."""
        return compose_key(self._prefix, self._version, key)

    def _emit(
        self, event_type: CacheEventType, key: str, error: BaseException | None = None
    ) -> None:
        self._reporter(CacheEvent(type=event_type, key=key, error=error))

    async def fetch(
        self,
        key: str,
        origin: Origin[R],
        options: FetchOptions | None = None,
    ) -> R:
        """Return the cached value for *key*, computing it with *origin* on a miss.

        On a miss exactly one concurrent caller (the lock winner) awaits
        *origin* and populates the cache; the others poll the backend until
        the value appears or ``lock_timeout_ms`` passes.

        Waiters only learn about the winner through the backend. If the
        winner's origin fails and nothing is stored, each waiter keeps
        polling for the full ``lock_timeout_ms`` before it raises
        ``CacheTimeoutError``, so a failing origin costs waiters the whole
        lock timeout rather than failing fast.

        With a local cache, a copy is served for at most the shorter of the
        local TTL and ``ttl_seconds``. A copy taken from a backend hit can
        outlive the remote entry by the time that entry had already aged.

        Raises:
            CacheBackendError: the initial read, lock acquisition or primary
                write failed.
            CacheSerializationError: the backend could not encode or decode
                the value.
            CacheTimeoutError: this caller waited out the lock timeout.
            InvalidKeyError: *key* is empty or contains control characters.
            Exception: whatever *origin* raised, unchanged, when no stale
                copy could be served instead.
        """
        validate_key(key)
        opts = options.merged_over(self._default_options) if options else self._default_options
        full_key = self.full_key(key)

        if self._local_cache is not None:
            local = self._local_cache.get(full_key)
            if local is not MISSING:
                self._emit(CacheEventType.HIT, full_key)
                return cast(R, local)

        try:
            cached = await self._backend.get(full_key)
        except Exception as exc:
            error = _as_cache_error(exc, "get value from cache")
            self._emit(CacheEventType.ERROR, full_key, error)
            if error is exc:
                raise
            raise error from exc

        if cached is not MISSING:
            self._remember(full_key, cached, opts)
            self._emit(CacheEventType.HIT, full_key)
            return cast(R, cached)

        self._emit(CacheEventType.MISS, full_key)
        lock = lock_key(full_key)
        try:
            acquired = await self._backend.try_acquire_lock(lock, opts.lock_timeout_seconds)
        except Exception as exc:
            error = _as_cache_error(exc, "acquire lock")
            self._emit(CacheEventType.ERROR, lock, error)
            if error is exc:
                raise
            raise error from exc

        if acquired:
            return await self._compute(key, full_key, lock, origin, opts)
        return await self._wait(key, full_key, lock, opts)

    async def _compute(
        self,
        key: str,
        full_key: str,
        lock: str,
        origin: Origin[R],
        opts: FetchOptions,
    ) -> R:
        """Single-flight winner: call the origin, populate the cache, always release."""
        self._emit(CacheEventType.LOCK, lock)
        try:
            try:
                value = await origin()
            except Exception as exc:
                self._emit(CacheEventType.ERROR, full_key, exc)
                stale = await self._read_stale(full_key, opts)
                if stale is MISSING:
                    raise
                logger.info("cache_stale_served", key=key, error_type=type(exc).__name__)
                return cast(R, stale)

            try:
                await self._backend.set(full_key, value, opts.ttl_seconds)
            except Exception as exc:
                error = _as_cache_error(exc, "store fetched value")
                self._emit(CacheEventType.ERROR, full_key, error)
                if error is exc:
                    raise
                raise error from exc

            self._remember(full_key, value, opts)
            if self._fallback_to_stale and opts.writes_stale_copy:
                await self._write_stale(full_key, value, opts)
            return value
        finally:
            await self._release(lock)

    async def _wait(self, key: str, full_key: str, lock: str, opts: FetchOptions) -> R:
        """Lock loser: poll the backend until the winner's value shows up."""
        self._emit(CacheEventType.WAIT, lock)

        async def probe() -> Any:
            try:
                return await self._backend.get(full_key)
            except Exception as exc:
                self._emit(CacheEventType.ERROR, full_key, _as_cache_error(exc, "poll cache"))
                return MISSING

        value = await wait_for_value(probe, opts.lock_timeout_seconds, self._poll_policy)
        if value is MISSING:
            error = CacheTimeoutError(key, opts.lock_timeout_ms)
            self._emit(CacheEventType.ERROR, full_key, error)
            raise error

        self._remember(full_key, value, opts)
        self._emit(CacheEventType.HIT, full_key)
        return cast(R, value)

    async def _read_stale(self, full_key: str, opts: FetchOptions) -> Any:
        """Last-known-good copy, or ``MISSING`` when fallback does not apply."""
        if not self._fallback_to_stale or not opts.stale_ttl_seconds:
            return MISSING
        key = stale_key(full_key)
        try:
            stale = await self._backend.get(key)
        except Exception as exc:
            self._emit(CacheEventType.ERROR, key, _as_cache_error(exc, "read stale copy"))
            return MISSING
        if stale is not MISSING:
            self._emit(CacheEventType.HIT, key)
        return stale

    async def _write_stale(self, full_key: str, value: Any, opts: FetchOptions) -> None:
        key = stale_key(full_key)
        try:
            await self._backend.set(key, value, opts.stale_ttl_seconds)
        except Exception as exc:
            self._emit(CacheEventType.ERROR, key, _as_cache_error(exc, "store stale copy"))

    async def _release(self, lock: str) -> None:
        # The lock TTL bounds how long a failed release can block other callers.
        try:
            await self._backend.release_lock(lock)
        except Exception as exc:
            self._emit(CacheEventType.ERROR, lock, _as_cache_error(exc, "release lock"))

    def _remember(self, full_key: str, value: Any, opts: FetchOptions) -> None:
        if self._local_cache is not None:
            self._local_cache.put(full_key, value, opts.ttl_seconds)

    def discard_local(self, full_key: str) -> None:
        """Forget the in-process copy of *full_key* after the backend entry changed."""
        if self._local_cache is not None:
            self._local_cache.discard(full_key)

    def clear_local_cache(self) -> None:
        """Forget every in-process copy held by this handler."""
        if self._local_cache is not None:
            self._local_cache.clear()
