"""Bounded waiter polling with a growing, capped interval."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_delay,
    wait_exponential,
)

from herdguard_core.constants import (
    DEFAULT_POLL_GROWTH,
    DEFAULT_POLL_INITIAL_SECONDS,
    DEFAULT_POLL_MAX_SECONDS,
)
from herdguard_core.exceptions import CacheConfigError
from herdguard_core.interfaces.backend import MISSING, Missing


@dataclass(frozen=True, slots=True)
class PollPolicy:
    """Delay schedule between waiter polls, in seconds."""

    initial_delay: float = DEFAULT_POLL_INITIAL_SECONDS
    max_delay: float = DEFAULT_POLL_MAX_SECONDS
    growth: float = DEFAULT_POLL_GROWTH

    def __post_init__(self) -> None:
        if self.initial_delay <= 0:
            msg = "initial_delay must be positive"
            raise CacheConfigError(msg)
        if self.growth < 1:
            msg = "growth must be at least 1 so delays never shrink"
            raise CacheConfigError(msg)
        if self.max_delay < self.initial_delay:
            msg = "max_delay must not be below initial_delay"
            raise CacheConfigError(msg)

    def wait_strategy(self) -> wait_exponential:
        """Delay of ``initial * growth**(n-1)`` before poll n+1, capped at ``max_delay``."""
        return wait_exponential(
            multiplier=self.initial_delay,
            exp_base=self.growth,
            max=self.max_delay,
        )


def _give_up(retry_state: RetryCallState) -> Missing:
    return MISSING


async def wait_for_value(
    probe: Callable[[], Awaitable[Any]],
    timeout_seconds: float,
    policy: PollPolicy,
) -> Any:
    """Call *probe* until it returns something other than ``MISSING``.

    The probe owns its error handling; it should report transient failures
    and return ``MISSING`` so polling continues. Returns ``MISSING`` once
    *timeout_seconds* have elapsed on the monotonic clock.
    """
    retrying = AsyncRetrying(
        stop=stop_after_delay(timeout_seconds),
        wait=policy.wait_strategy(),
        retry=retry_if_result(lambda value: value is MISSING),
        retry_error_callback=_give_up,
    )
    return await retrying(probe)
