"""Tagged result types returned across the relay boundary.

Failures inside the relay are values, not exceptions: every outcome of a
relayed request is either ``Ok(value)`` or ``Err(kind, message, details)``.
The HTTP layer decides how each ``ErrorKind`` is rendered.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

from relay.core.errors import ErrorDetails

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Enumerable failure kinds produced by the relay."""

    UPSTREAM_ERROR = "upstream_error"
    TRANSPORT_ERROR = "transport_error"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    RATE_LIMIT_TIMEOUT = "rate_limit_timeout"
    RATE_LIMIT_UNAVAILABLE = "rate_limit_unavailable"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a kind and a human-readable message.

    Attributes:
        kind: Machine-readable failure kind.
        message: Message safe to show to API consumers.
        details: Optional structured context (never internal identifiers).
    """

    kind: ErrorKind
    message: str
    details: ErrorDetails | None = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
