"""Per-provider circuit breaker: stop calling a vendor that keeps failing."""

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from src.errors import TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """Opens after ``failure_threshold`` consecutive transient failures.

    While open, calls fail fast with TransientProviderError. Once
    ``recovery_timeout_sec`` has passed a single trial call is let through
    and every other caller keeps failing fast until it settles. A successful
    trial closes the breaker; any other outcome re-opens it. Only transient
    failures count towards the threshold.
    """

    def __init__(
        self,
        provider_name: str,
        failure_threshold: int = 3,
        recovery_timeout_sec: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider_name = provider_name
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout_sec
        self._clock = clock
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> BreakerState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    def _fail_fast(self) -> TransientProviderError:
        return TransientProviderError(
            self._provider_name,
            "service temporarily unavailable (circuit open)",
            {"failureCount": self._failures, "retryAfter": self._recovery_timeout},
        )

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self._state is BreakerState.OPEN:
            if self._clock() - self._opened_at < self._recovery_timeout:
                raise self._fail_fast()
            self._state = BreakerState.HALF_OPEN

        trial = self._state is BreakerState.HALF_OPEN
        if trial:
            if self._trial_in_flight:
                raise self._fail_fast()
            self._trial_in_flight = True

        try:
            result = await operation()
        except TransientProviderError:
            self._record_failure()
            raise
        else:
            self._failures = 0
            self._state = BreakerState.CLOSED
        finally:
            if trial:
                self._trial_in_flight = False
                if self._state is BreakerState.HALF_OPEN:
                    # Trial ended without a verdict (cancelled or rejected): back to open.
                    self._state = BreakerState.OPEN
                    self._opened_at = self._clock()
        return result

    def _record_failure(self) -> None:
        self._failures += 1
        if self._state is BreakerState.HALF_OPEN or self._failures >= self._failure_threshold:
            if self._state is not BreakerState.OPEN:
                logger.warning(
                    "Circuit opened for %s after %d consecutive failures",
                    self._provider_name,
                    self._failures,
                )
            self._state = BreakerState.OPEN
            self._opened_at = self._clock()

    def reset(self) -> None:
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False
