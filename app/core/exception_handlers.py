"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → appropriate HTTP status (400, 429, 503)
- RateLimitExceededAppError → 429 with Retry-After / X-RateLimit-* headers
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    AppError,
    CounterBackendAppError,
    RateLimitExceededAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_code_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status code."""
    if isinstance(exc, RateLimitExceededAppError):
        return 429
    if isinstance(exc, CounterBackendAppError):
        # Normally absorbed by the circuit breaker; only reachable if a caller
        # talks to the remote counter directly.
        return 503
    # ValidationAppError and other client faults
    return 400


def rate_limit_headers(exc: RateLimitExceededAppError) -> dict[str, str]:
    """Retry-After always; X-RateLimit-* when enabled in settings."""
    details = exc.details or {}
    headers = {"Retry-After": str(exc.retry_after_seconds)}
    if settings.app.rate_limit_include_headers:
        if "limit" in details:
            headers["X-RateLimit-Limit"] = str(details["limit"])
        if "remaining" in details:
            headers["X-RateLimit-Remaining"] = str(details["remaining"])
        if "reset_at" in details:
            headers["X-RateLimit-Reset"] = str(details["reset_at"])
    return headers


def build_error_response(exc: AppError) -> JSONResponse:
    """Render an AppError as the standard JSON error envelope.

    Throttling errors only expose ``retry_after`` in the body; quota numbers go
    to the headers.
    """
    status_code = status_code_for(exc)

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    headers: dict[str, str] | None = None
    if isinstance(exc, RateLimitExceededAppError):
        error_content["details"] = {"retry_after": exc.retry_after_seconds}
        headers = rate_limit_headers(exc)
    elif exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For distributed tracing
    - error.details: Optional structured context
    """
    status_code = status_code_for(exc)
    log = logger.info if status_code == 429 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "has_details": bool(exc.details),
        },
    )
    return build_error_response(exc)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs details for debugging while returning a generic message; no stack
    traces or internal messages reach the client.
    """
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


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Specific handlers are registered before the general fallback.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
