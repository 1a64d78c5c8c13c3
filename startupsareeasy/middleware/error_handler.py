"""Global exception handlers mapping errors to the JSON error envelope."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from startupsareeasy.rest.errors import (
    ApiError,
    AuthExpiredError,
    CircuitOpenError,
    ConflictError,
    NetworkError,
    NotFoundError,
    OperationTimeoutError,
    PermissionDeniedError,
    RateLimitExceededError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first
API_ERROR_MAP: list[tuple[type[ApiError], int, str]] = [
    (AuthExpiredError, 401, "authentication_error"),
    (PermissionDeniedError, 403, "forbidden"),
    (NotFoundError, 404, "not_found"),
    (ConflictError, 409, "conflict"),
    (ValidationError, 422, "validation_error"),
    (RateLimitExceededError, 429, "rate_limit"),
    (CircuitOpenError, 503, "service_unavailable"),
    (NetworkError, 502, "upstream_error"),
    (OperationTimeoutError, 504, "upstream_timeout"),
]


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_response(status: int, error_type: str, message: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={
            "status": "error",
            "error": {
                "type": error_type,
                "message": message,
                "request_id": request_id,
            },
        },
    )


def classify_api_error(exc: ApiError) -> tuple[int, str]:
    for error_class, status, error_type in API_ERROR_MAP:
        if isinstance(exc, error_class):
            return status, error_type
    return 502, "upstream_error"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        messages = "; ".join(
            f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}" for e in exc.errors()
        )
        return _error_response(422, "validation_error", messages, _request_id(request))

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        type_map = {
            400: "bad_request",
            401: "authentication_error",
            403: "forbidden",
            404: "not_found",
            409: "conflict",
            429: "rate_limit",
        }
        error_type = type_map.get(exc.status_code, "http_error")
        return _error_response(exc.status_code, error_type, exc.detail, _request_id(request))

    @app.exception_handler(ApiError)
    async def api_error(request: Request, exc: ApiError):
        status, error_type = classify_api_error(exc)
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return _error_response(status, error_type, exc.message, _request_id(request))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(500, "internal_error", "An unexpected error occurred", _request_id(request))
