"""Tests for the circuit breaker."""

import asyncio

import pytest

from startupsareeasy.rest.errors import CircuitOpenError, OperationTimeoutError
from startupsareeasy.session.breaker import CircuitBreaker, CircuitState


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def failing(calls):
    async def operation():
        calls.append(1)
        raise RuntimeError("down")
    return operation


async def succeeding():
    return "ok"


@pytest.mark.asyncio
async def test_opens_after_three_failures_and_rejects_without_calling():
    calls = []
    breaker = CircuitBreaker(clock=FakeClock())

    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing(calls), "refresh")

    assert breaker.state is CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await breaker.execute(failing(calls), "refresh")
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_half_opens_after_cooldown_and_success_resets():
    clock = FakeClock()
    breaker = CircuitBreaker(cooldown=30.0, clock=clock)
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing([]), "refresh")

    clock.now += 31
    assert await breaker.execute(succeeding, "refresh") == "ok"
    assert breaker.state is CircuitState.CLOSED
    assert breaker.failure_count == 0


@pytest.mark.asyncio
async def test_failure_while_half_open_reopens():
    clock = FakeClock()
    breaker = CircuitBreaker(clock=clock)
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing([]), "refresh")

    clock.now += 31
    with pytest.raises(RuntimeError):
        await breaker.execute(failing([]), "refresh")
    assert breaker.is_open()


@pytest.mark.asyncio
async def test_success_before_threshold_resets_count():
    breaker = CircuitBreaker(clock=FakeClock())
    for _ in range(2):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing([]), "refresh")

    await breaker.execute(succeeding, "refresh")
    assert breaker.failure_count == 0
    assert breaker.state is CircuitState.CLOSED


@pytest.mark.asyncio
async def test_slow_operation_times_out_and_counts_as_failure():
    breaker = CircuitBreaker(attempt_timeout=0.01, clock=FakeClock())

    async def slow():
        await asyncio.sleep(1)

    with pytest.raises(OperationTimeoutError, match="refresh timeout"):
        await breaker.execute(slow, "refresh")
    assert breaker.failure_count == 1


@pytest.mark.asyncio
async def test_reset_closes_circuit():
    breaker = CircuitBreaker(max_failures=1, clock=FakeClock())
    with pytest.raises(RuntimeError):
        await breaker.execute(failing([]), "refresh")
    assert breaker.is_open()

    breaker.reset()
    assert breaker.state is CircuitState.CLOSED
    assert await breaker.execute(succeeding, "refresh") == "ok"
