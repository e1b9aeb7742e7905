"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → mapped HTTP status (400, 401, 502, 503, 504)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for log correlation
"""

import logging
import math

from fastapi import Request
from fastapi.responses import JSONResponse

from relay.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitAppError,
    RateLimitTimeoutAppError,
    StoreAppError,
    UpstreamAppError,
    ValidationAppError,
)
from relay.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Most specific first: subclasses must precede their bases
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (AuthenticationAppError, 401),
    (ValidationAppError, 400),
    (RateLimitTimeoutAppError, 504),
    (RateLimitAppError, 503),
    (StoreAppError, 503),
    (UpstreamAppError, 502),
)


def status_code_for(exc: AppError) -> int:
    """Resolve the HTTP status for an application error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For log correlation
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_code_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
            "request_id": get_request_id(),
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
    if isinstance(exc, AuthenticationAppError):
        headers["WWW-Authenticate"] = "ApiKey"
    elif isinstance(exc, RateLimitAppError) and not isinstance(exc, RateLimitTimeoutAppError):
        retry_after = (exc.details or {}).get("retry_after", 1)
        headers["Retry-After"] = str(max(1, math.ceil(retry_after)))

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message, so no
    stack traces or internal identifiers reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
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

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
