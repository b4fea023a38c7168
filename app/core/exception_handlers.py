"""Global exception handlers for consistent error responses.

- AppError subclasses map to their HTTP status (400, 401, 409, 429)
- Unexpected exceptions become a generic 500
- All error bodies carry the request_id for tracing
"""

from __future__ import annotations

import logging
import math

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    ConflictAppError,
    ErrorDetails,
    RateLimitAppError,
    ValidationAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (RateLimitAppError, 429),
    (AuthenticationAppError, 401),
    (ConflictAppError, 409),
    (ValidationAppError, 400),
)


def status_code_for(exc: AppError) -> int:
    """Return the HTTP status for a domain error (400 when unmapped)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def rate_limit_headers(details: ErrorDetails) -> dict[str, str]:
    """Build ``Retry-After`` and ``X-RateLimit-*`` headers for a 429.

    Args:
        details: Details of a RateLimitAppError.

    Returns:
        Header mapping; fields absent from ``details`` are omitted.
    """
    headers: dict[str, str] = {}
    retry_after_ms = details.get("retry_after_ms")
    if retry_after_ms:
        headers["Retry-After"] = str(math.ceil(retry_after_ms / 1000))
    if "limit" in details:
        headers["X-RateLimit-Limit"] = str(details["limit"])
    if "remaining" in details:
        headers["X-RateLimit-Remaining"] = str(details["remaining"])
    if "reset_at" in details:
        headers["X-RateLimit-Reset"] = str(details["reset_at"])
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors as ``{"error": {...}}`` with the mapped status.

    Rate-limit errors also carry ``Retry-After`` (seconds, rounded up) and
    ``X-RateLimit-Limit`` / ``-Remaining`` / ``-Reset`` (epoch seconds).
    """
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitAppError) and exc.details:
        headers = rate_limit_headers(exc.details)

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unexpected errors; never leaks internals to the client."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the domain and fallback handlers on ``app``."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
