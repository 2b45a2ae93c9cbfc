"""Tests for src/providers/circuit_breaker.py."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.errors import ProviderConfigurationError, TransientProviderError
from src.providers.circuit_breaker import BreakerState, CircuitBreaker


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _failing() -> AsyncMock:
    return AsyncMock(side_effect=TransientProviderError("alpha", "503"))


async def _fail(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(TransientProviderError):
            await breaker.call(_failing())


async def test_opens_after_threshold():
    breaker = CircuitBreaker("alpha", failure_threshold=3, clock=FakeClock())
    await _fail(breaker, 2)
    assert breaker.state is BreakerState.CLOSED
    await _fail(breaker, 1)
    assert breaker.state is BreakerState.OPEN


async def test_open_breaker_fails_fast_without_calling():
    breaker = CircuitBreaker("alpha", failure_threshold=1, clock=FakeClock())
    await _fail(breaker, 1)

    operation = AsyncMock(return_value="ok")
    with pytest.raises(TransientProviderError, match="circuit open"):
        await breaker.call(operation)
    operation.assert_not_called()


async def test_half_open_trial_success_closes():
    clock = FakeClock()
    breaker = CircuitBreaker("alpha", failure_threshold=1, recovery_timeout_sec=30, clock=clock)
    await _fail(breaker, 1)

    clock.now += 31
    assert await breaker.call(AsyncMock(return_value="ok")) == "ok"
    assert breaker.state is BreakerState.CLOSED
    assert breaker.failure_count == 0


async def test_half_open_trial_failure_reopens():
    clock = FakeClock()
    breaker = CircuitBreaker("alpha", failure_threshold=3, recovery_timeout_sec=30, clock=clock)
    await _fail(breaker, 3)

    clock.now += 31
    await _fail(breaker, 1)
    assert breaker.state is BreakerState.OPEN


async def test_configuration_errors_do_not_count():
    breaker = CircuitBreaker("alpha", failure_threshold=1, clock=FakeClock())
    with pytest.raises(ProviderConfigurationError):
        await breaker.call(AsyncMock(side_effect=ProviderConfigurationError("alpha", "401")))
    assert breaker.state is BreakerState.CLOSED
    assert breaker.failure_count == 0


async def test_success_resets_failure_count():
    breaker = CircuitBreaker("alpha", failure_threshold=3, clock=FakeClock())
    await _fail(breaker, 2)
    await breaker.call(AsyncMock(return_value="ok"))
    assert breaker.failure_count == 0


async def test_reset():
    breaker = CircuitBreaker("alpha", failure_threshold=1, clock=FakeClock())
    await _fail(breaker, 1)
    breaker.reset()
    assert breaker.state is BreakerState.CLOSED


async def test_half_open_admits_a_single_trial():
    clock = FakeClock()
    breaker = CircuitBreaker("alpha", failure_threshold=1, recovery_timeout_sec=30, clock=clock)
    await _fail(breaker, 1)
    clock.now += 31

    release = asyncio.Event()
    admitted = []

    async def slow_ok():
        admitted.append(1)
        await release.wait()
        return "ok"

    trial = asyncio.create_task(breaker.call(slow_ok))
    await asyncio.sleep(0)
    assert breaker.state is BreakerState.HALF_OPEN

    others = await asyncio.gather(*(breaker.call(slow_ok) for _ in range(4)), return_exceptions=True)
    assert all(isinstance(r, TransientProviderError) for r in others)

    release.set()
    assert await trial == "ok"
    assert len(admitted) == 1
    assert breaker.state is BreakerState.CLOSED


async def test_rejected_trial_reopens_instead_of_sticking():
    clock = FakeClock()
    breaker = CircuitBreaker("alpha", failure_threshold=1, recovery_timeout_sec=30, clock=clock)
    await _fail(breaker, 1)
    clock.now += 31

    with pytest.raises(ProviderConfigurationError):
        await breaker.call(AsyncMock(side_effect=ProviderConfigurationError("alpha", "400")))

    assert breaker.state is BreakerState.OPEN
    operation = AsyncMock(return_value="ok")
    with pytest.raises(TransientProviderError, match="circuit open"):
        await breaker.call(operation)
    operation.assert_not_called()

    clock.now += 31
    assert await breaker.call(operation) == "ok"
    assert breaker.state is BreakerState.CLOSED


async def test_cancelled_trial_releases_the_slot():
    clock = FakeClock()
    breaker = CircuitBreaker("alpha", failure_threshold=1, recovery_timeout_sec=30, clock=clock)
    await _fail(breaker, 1)
    clock.now += 31

    trial = asyncio.create_task(breaker.call(lambda: asyncio.sleep(10)))
    await asyncio.sleep(0)
    trial.cancel()
    with pytest.raises(asyncio.CancelledError):
        await trial

    assert breaker.state is BreakerState.OPEN
    clock.now += 31
    assert await breaker.call(AsyncMock(return_value="ok")) == "ok"
