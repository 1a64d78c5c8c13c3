"""In-flight request deduplication and a client-side sliding window rate limiter.

Both are scoped to a single client context; nothing here coordinates with
other processes or is enforced by the server.
"""

import asyncio
import logging
import time
from collections import defaultdict, deque
from collections.abc import Callable
from urllib.parse import urlsplit

import httpx

from startupsareeasy.rest.errors import RateLimitExceededError

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    def __init__(self, limit: int = 10, window: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: dict[str, deque[float]] = defaultdict(deque)

    def allow(self, key: str) -> bool:
        """Record a request for ``key`` if it fits in the window."""
        now = self._clock()
        window = self._windows[key]
        cutoff = now - self.window
        while window and window[0] <= cutoff:
            window.popleft()

        if len(window) >= self.limit:
            return False

        window.append(now)
        return True

    def check(self, key: str) -> None:
        if not self.allow(key):
            logger.warning("Rate limit exceeded for %s", key)
            raise RateLimitExceededError(f"Rate limit exceeded for {key}")


def request_key(method: str, url: str, content: str | bytes | None = None) -> str:
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    return f"{method.upper()}:{url}:{content or ''}"


def rate_limit_key(method: str, url: str) -> str:
    return f"{method.upper()}:{urlsplit(url).path}"


class RequestDeduplicator:
    """Shares one pending request between identical concurrent callers.

    Two calls with the same method, URL and body made before the first one
    completes get the very same task. Finished entries stay cached for
    ``eviction_delay`` seconds; a cancelled task is dropped at once. Callers
    should await the task through ``asyncio.shield``.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        limiter: SlidingWindowRateLimiter | None = None,
        eviction_delay: float = 5.0,
    ):
        self.http = http
        self.limiter = limiter or SlidingWindowRateLimiter()
        self.eviction_delay = eviction_delay
        self._in_flight: dict[str, asyncio.Task] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._in_flight

    def fetch(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        content: str | bytes | None = None,
    ) -> "asyncio.Task[httpx.Response]":
        key = request_key(method, url, content)
        existing = self._in_flight.get(key)
        if existing is not None:
            logger.debug("Deduplicating request: %s", key)
            return existing

        self.limiter.check(rate_limit_key(method, url))

        task = asyncio.ensure_future(self.http.request(method, url, headers=headers, content=content))
        self._in_flight[key] = task
        task.add_done_callback(lambda _: self._schedule_eviction(key, task))
        return task

    def _schedule_eviction(self, key: str, task: asyncio.Task) -> None:
        if task.cancelled():
            self._evict(key, task)
            return
        loop = task.get_loop()
        loop.call_later(self.eviction_delay, self._evict, key, task)

    def _evict(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    def clear(self) -> None:
        self._in_flight.clear()
