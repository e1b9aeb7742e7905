"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from relay.core.result import Err


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent without forcing every
    error to carry every field.
    """

    code: str
    message: str
    hint: str
    http_status: int
    upstream_status: int
    upstream_reason: str
    retry_after: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class UpstreamAppError(AppError):
    """Raised when the upstream API answers with a non-success status."""


class TransportAppError(UpstreamAppError):
    """Raised when the upstream API cannot be reached at all."""


class RateLimitAppError(AppError):
    """Raised when no upstream slot could be acquired within the retry cap."""


class RateLimitTimeoutAppError(RateLimitAppError):
    """Raised when acquiring an upstream slot exceeded the caller timeout."""


class RateLimitUnavailableAppError(RateLimitAppError):
    """Raised when the shared rate limit state cannot be read or written."""


class StoreAppError(AppError):
    """Raised by atomic store adapters when the backing store fails."""


def app_error_from_result(err: Err) -> AppError:
    """Translate a relay ``Err`` into the matching exception type.

    Args:
        err: Failed relay outcome.

    Returns:
        AppError subclass carrying the same code, message and details.
    """
    from relay.core.result import ErrorKind

    error_types: dict[ErrorKind, type[AppError]] = {
        ErrorKind.UPSTREAM_ERROR: UpstreamAppError,
        ErrorKind.TRANSPORT_ERROR: TransportAppError,
        ErrorKind.RATE_LIMIT_EXCEEDED: RateLimitAppError,
        ErrorKind.RATE_LIMIT_TIMEOUT: RateLimitTimeoutAppError,
        ErrorKind.RATE_LIMIT_UNAVAILABLE: RateLimitUnavailableAppError,
    }
    error_type = error_types.get(err.kind, UpstreamAppError)
    return error_type(code=err.kind.value, message=err.message, details=err.details)
