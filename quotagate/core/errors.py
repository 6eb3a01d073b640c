"""Application-level exception types.

This module defines the errors raised by the limiter, its store adapters and
the configuration builder, enabling consistent error handling, logging, and
API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what is relevant.
    """

    code: str
    message: str
    hint: str
    config_key: str
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    store: str
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


class ConfigurationAppError(AppError):
    """Raised at build time when limiter configuration is invalid."""


class StoreUnavailableError(AppError):
    """Raised when the shared counting store cannot serve a request."""


class StoreConnectionError(StoreUnavailableError):
    """Raised when no connection to the counting store could be obtained."""


class StoreOperationError(StoreUnavailableError):
    """Raised when the atomic counting operation itself fails."""


class RateLimitDenial(AppError):
    """Base for denials: the request is refused, the system is healthy."""


class RateLimitExceededError(RateLimitDenial):
    """Raised when a client has used up its quota for the current window."""


class UnresolvedKeyError(RateLimitDenial):
    """Raised when no client key resolves and the policy is fail-closed."""
