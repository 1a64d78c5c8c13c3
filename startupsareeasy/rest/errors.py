"""Typed errors raised by the REST client and the session layer.

Recovery code dispatches on these types instead of parsing messages. The only
place that still looks at message text is :func:`error_from_response`, which
turns a failed HTTP response from the hosted database into the right subclass.
"""

# Substrings the hosted database and auth provider use for auth failures
AUTH_MARKERS = (
    "session timeout",
    "authentication token required",
    "row-level security",
    "unauthorized",
    "jwt",
    "auth",
)
RLS_MARKER = "row-level security"


class ApiError(Exception):
    """Base error carrying the HTTP status and raw body text when there is one."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.body = body

    def __str__(self) -> str:
        return self.message


class NetworkError(ApiError):
    """Transport failure: connection refused, DNS, TLS, read error."""


class AuthExpiredError(ApiError):
    """The bearer token is missing, expired or rejected."""


class InvalidLoginError(AuthExpiredError):
    """The login endpoint rejected the submitted credentials or payload."""


class PermissionDeniedError(ApiError):
    """Authenticated but not allowed, typically a row-level security denial."""


class ValidationError(ApiError):
    """The request or the data it carries is malformed."""


class ConflictError(ApiError):
    """A unique constraint was violated."""


class NotFoundError(ApiError):
    pass


class RateLimitExceededError(ApiError):
    """Raised client side before a request is sent."""


class CircuitOpenError(ApiError):
    """The circuit breaker is open; the caller should use its fallback path."""


class OperationTimeoutError(ApiError):
    """A guarded operation did not finish within its per-attempt timeout."""


def error_from_response(status: int, body: str, context: str = "") -> ApiError:
    """Map a failed response to a typed error, keeping status and body."""
    message = f"HTTP {status}: {body}"
    if context:
        message = f"{context}: {message}"
    lowered = body.lower()

    if status == 401 or "jwt" in lowered or "authentication token required" in lowered:
        return AuthExpiredError(message, status, body)
    if status == 403 or RLS_MARKER in lowered:
        return PermissionDeniedError(message, status, body)
    if status == 409:
        return ConflictError(message, status, body)
    if status == 404:
        return NotFoundError(message, status, body)
    if status in (400, 422):
        return ValidationError(message, status, body)
    if status == 429:
        return RateLimitExceededError(message, status, body)
    return ApiError(message, status, body)


def is_auth_error(error: BaseException | None) -> bool:
    """True when recovering the session is the right response to ``error``."""
    if error is None:
        return False
    if isinstance(error, (AuthExpiredError, PermissionDeniedError, CircuitOpenError, OperationTimeoutError)):
        return True
    if isinstance(error, ApiError):
        return False
    # Untyped errors from third-party code: fall back to the message
    message = str(error).lower()
    return "403" in message or any(marker in message for marker in AUTH_MARKERS)
