"""Circuit breaker for flaky auth calls."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from startupsareeasy.rest.errors import CircuitOpenError, OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    """Opens after ``max_failures`` consecutive failures and half-opens after ``cooldown``.

    Each attempt is raced against ``attempt_timeout``; a timeout counts as a
    failure. While the circuit is open, :meth:`execute` raises
    :class:`CircuitOpenError` without calling the operation.
    """

    def __init__(
        self,
        max_failures: int = 3,
        cooldown: float = 30.0,
        attempt_timeout: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_failures = max_failures
        self.cooldown = cooldown
        self.attempt_timeout = attempt_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_time = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    def is_open(self) -> bool:
        return self._state is CircuitState.OPEN

    async def execute(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        if self._state is CircuitState.OPEN:
            if self._clock() - self._last_failure_time > self.cooldown:
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit breaker half-open for %s", name)
            else:
                logger.warning("Circuit breaker open for %s, using fallback", name)
                raise CircuitOpenError(f"Circuit breaker open for {name}")

        try:
            result = await asyncio.wait_for(operation(), timeout=self.attempt_timeout)
        except asyncio.TimeoutError as exc:
            self._record_failure(name)
            raise OperationTimeoutError(f"{name} timeout") from exc
        except Exception:
            self._record_failure(name)
            raise

        if self._failures or self._state is not CircuitState.CLOSED:
            logger.debug("Circuit breaker reset for %s", name)
        self._failures = 0
        self._state = CircuitState.CLOSED
        return result

    def _record_failure(self, name: str) -> None:
        self._failures += 1
        self._last_failure_time = self._clock()
        if self._failures >= self.max_failures:
            if self._state is not CircuitState.OPEN:
                logger.warning("Circuit breaker opened for %s after %d failures", name, self._failures)
            self._state = CircuitState.OPEN

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_time = 0.0
        logger.info("Circuit breaker manually reset")
