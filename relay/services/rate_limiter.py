"""Global upstream rate limiter.

Keeps upstream calls for one scope at least ``1000 / requests_per_second``
milliseconds apart across every relay instance sharing the atomic store.

Acquisition protocol per attempt:
- read ``last_granted_at`` (absent means "infinitely long ago")
- if the interval has elapsed, compare-and-swap it to ``now``
- a successful swap grants the slot; anything else waits and retries

Waits grow linearly (``retry_delay + attempt * backoff_step``) and the number
of attempts is a hard cap. There is no unlock step: advancing the timestamp
is the claim.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from relay.adapters.store.base import AbstractAtomicStore
from relay.core.errors import RateLimitUnavailableAppError, StoreAppError
from relay.core.result import Err, ErrorKind, Result

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AcquisitionState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    GRANTED = "granted"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RateLimitStats:
    """Informational snapshot for one scope.

    Attributes:
        last_granted_at_ms: Epoch milliseconds of the latest grant, None if never.
        estimated_wait_ms: Time until the next slot opens (0 when open now).
    """

    last_granted_at_ms: int | None
    estimated_wait_ms: int

    def ms_ago(self, now_ms: int) -> int | None:
        if self.last_granted_at_ms is None:
            return None
        return max(0, now_ms - self.last_granted_at_ms)


class GlobalRateLimiter:
    """Minimum-interval limiter over a shared compare-and-swap store."""

    def __init__(
        self,
        store: AbstractAtomicStore,
        *,
        requests_per_second: float = 1.0,
        max_retries: int = 30,
        retry_delay_ms: int = 100,
        backoff_step_ms: int = 50,
        acquire_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared atomic store holding one timestamp per scope.
            requests_per_second: Upstream rate ceiling per scope.
            max_retries: Acquisition attempts before giving up.
            retry_delay_ms: Base wait between attempts.
            backoff_step_ms: Extra wait added per failed attempt.
            acquire_timeout_seconds: Bound on the whole acquisition loop.
            clock: Time source returning UNIX time in seconds.
            sleep: Awaitable sleep used between attempts.

        Raises:
            ValueError: If any limit is out of range.
        """
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be > 0")
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if retry_delay_ms < 0 or backoff_step_ms < 0:
            raise ValueError("retry_delay_ms and backoff_step_ms must be >= 0")
        if acquire_timeout_seconds is not None and acquire_timeout_seconds <= 0:
            raise ValueError("acquire_timeout_seconds must be > 0 or None")

        self._store = store
        self.requests_per_second = requests_per_second
        self.min_interval_ms = 1000.0 / requests_per_second
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self.backoff_step_ms = backoff_step_ms
        self.acquire_timeout_seconds = acquire_timeout_seconds
        self._clock = clock
        self._sleep = sleep

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def backoff_delay_ms(self, failed_attempts: int) -> int:
        """Wait before the next attempt after ``failed_attempts`` failures."""
        return self.retry_delay_ms + failed_attempts * self.backoff_step_ms

    def max_total_wait_ms(self) -> int:
        """Upper bound on time spent sleeping in one acquisition."""
        return sum(self.backoff_delay_ms(n) for n in range(1, self.max_retries))

    async def try_acquire(self, scope: str) -> bool:
        """Run a single acquisition attempt for ``scope``."""
        current = await self._store.get(scope)
        now = self.now_ms()

        if current.value is not None and now - current.value < self.min_interval_ms:
            return False

        return await self._store.conditional_set(scope, now, current.version)

    async def _acquire(self, scope: str) -> AcquisitionState:
        state = AcquisitionState.IDLE
        attempts = 0
        delay_ms = 0

        while state in (AcquisitionState.IDLE, AcquisitionState.WAITING):
            if state is AcquisitionState.WAITING:
                await self._sleep(delay_ms / 1000)

            attempts += 1
            if await self.try_acquire(scope):
                state = AcquisitionState.GRANTED
            elif attempts >= self.max_retries:
                state = AcquisitionState.EXHAUSTED
            else:
                state = AcquisitionState.WAITING
                delay_ms = self.backoff_delay_ms(attempts)
                logger.debug(
                    "rate_limit.waiting",
                    extra={
                        "attempt": attempts,
                        "max_retries": self.max_retries,
                        "wait_ms": delay_ms,
                    },
                )

        logger.debug("rate_limit.%s", state.value, extra={"attempts": attempts})
        return state

    def _retry_after_seconds(self) -> float:
        return max(1.0, round(self.min_interval_ms / 1000, 3))

    async def execute(
        self,
        scope: str,
        action: Callable[[], Awaitable[Result[T]]],
    ) -> Result[T]:
        """Acquire a slot for ``scope`` and run ``action`` once it is granted.

        The action's result (or exception) is returned unchanged; only the
        acquisition step is retried. Store failures during acquisition become
        an ``Err`` rather than an exception.

        Args:
            scope: Rate limit scope, one per upstream API.
            action: Zero-argument coroutine factory performing the upstream call.

        Returns:
            The action's result, or Err(RATE_LIMIT_EXCEEDED / RATE_LIMIT_TIMEOUT /
            RATE_LIMIT_UNAVAILABLE).
        """
        try:
            if self.acquire_timeout_seconds is None:
                state = await self._acquire(scope)
            else:
                state = await asyncio.wait_for(
                    self._acquire(scope),
                    timeout=self.acquire_timeout_seconds,
                )
        except asyncio.TimeoutError:
            logger.warning(
                "rate_limit.timeout",
                extra={"timeout_seconds": self.acquire_timeout_seconds},
            )
            return Err(
                kind=ErrorKind.RATE_LIMIT_TIMEOUT,
                message="Timed out waiting for an upstream request slot",
            )
        except (StoreAppError, OSError) as exc:
            logger.error(
                "rate_limit.store_unavailable",
                extra={"error_type": type(exc).__name__},
            )
            return Err(
                kind=ErrorKind.RATE_LIMIT_UNAVAILABLE,
                message="Upstream rate limit is temporarily unavailable",
                details={"retry_after": self._retry_after_seconds()},
            )

        if state is AcquisitionState.EXHAUSTED:
            logger.warning(
                "rate_limit.exceeded",
                extra={"max_retries": self.max_retries},
            )
            return Err(
                kind=ErrorKind.RATE_LIMIT_EXCEEDED,
                message="Upstream rate limit reached, please retry later",
                details={"retry_after": self._retry_after_seconds()},
            )

        return await action()

    async def stats(self, scope: str) -> RateLimitStats:
        """Read-only view of ``scope``; never writes to the store.

        Raises:
            RateLimitUnavailableAppError: If the store cannot be read.
        """
        try:
            current = await self._store.get(scope)
        except (StoreAppError, OSError) as exc:
            logger.error(
                "rate_limit.store_unavailable",
                extra={"error_type": type(exc).__name__},
            )
            raise RateLimitUnavailableAppError(
                code=ErrorKind.RATE_LIMIT_UNAVAILABLE.value,
                message="Upstream rate limit is temporarily unavailable",
                details={"retry_after": self._retry_after_seconds()},
            ) from exc

        if current.value is None:
            return RateLimitStats(last_granted_at_ms=None, estimated_wait_ms=0)

        elapsed = self.now_ms() - current.value
        wait = max(0, int(round(self.min_interval_ms - elapsed)))
        return RateLimitStats(last_granted_at_ms=current.value, estimated_wait_ms=wait)

    async def close(self) -> None:
        await self._store.close()
