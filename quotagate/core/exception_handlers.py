"""Global exception handlers for consistent error responses.

Errors raised from routes and denials produced by the rate limit middleware
share one JSON envelope:

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}

Design:
- RateLimitDenial subclasses → 429 Too Many Requests
- StoreUnavailableError → 503 Service Unavailable
- ConfigurationAppError → 500 (server misconfiguration)
- Other AppError → 400
- Unexpected Exception → generic 500 (safety net)
"""

import logging
from typing import Mapping

from fastapi import Request
from fastapi.responses import JSONResponse

from quotagate.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitDenial,
    StoreUnavailableError,
)
from quotagate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_code_for(exc: AppError) -> int:
    """Map an application error to its HTTP status code."""
    if isinstance(exc, RateLimitDenial):
        return 429
    if isinstance(exc, StoreUnavailableError):
        return 503
    if isinstance(exc, ConfigurationAppError):
        return 500
    return 400


def error_response(
    exc: AppError,
    *,
    status_code: int | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Render an AppError in the standard error envelope.

    Args:
        exc: Error to render.
        status_code: Override for the status derived from the error type.
        headers: Extra response headers (e.g. Retry-After).

    Returns:
        JSONResponse with the error envelope.
    """
    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    # Include details only if present (optional structured context)
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code or status_code_for(exc),
        content={"error": error_content},
        headers=dict(headers) if headers else None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle application errors raised from routes."""
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        }
    )

    return error_response(exc, status_code=status_code)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message, so no
    stack traces or store details leak to clients.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        }
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

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
