"""In-memory sliding window rate limiter for the login endpoints, keyed by client address."""

import time
from collections import defaultdict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from startupsareeasy.config.settings import get_settings

# Endpoints that issue login tokens or credentials; check-login is polled and stays open
LIMITED_PATHS = {"/api/create-login-token", "/api/get-user-password"}
WINDOW_SECONDS = 60.0


def client_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiterMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit: int | None = None):
        super().__init__(app)
        self.limit = limit
        # client -> list of request timestamps
        self._windows: dict[str, list[float]] = defaultdict(list)

    def _check_limit(self, window: list[float], limit: int, now: float) -> tuple[bool, int]:
        """Remove expired entries, check if under limit. Returns (allowed, retry_after_seconds)."""
        cutoff = now - WINDOW_SECONDS
        while window and window[0] < cutoff:
            window.pop(0)

        if len(window) >= limit:
            retry_after = int(window[0] - cutoff) + 1
            return False, retry_after

        window.append(now)
        return True, 0

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path.rstrip("/") not in LIMITED_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        limit = self.limit or get_settings().RATE_LIMIT_LOGIN
        allowed, retry_after = self._check_limit(self._windows[client_key(request)], limit, time.time())
        if not allowed:
            return Response(
                content='{"status":"error","error":{"type":"rate_limit","message":"Too many login attempts"}}',
                status_code=429,
                headers={"Retry-After": str(retry_after), "Content-Type": "application/json"},
            )

        return await call_next(request)
