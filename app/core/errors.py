"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    limit: int
    remaining: int
    reset_at: int
    preset: str
    backend: str
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


class CounterBackendAppError(AppError):
    """Raised when the remote counter service fails (network, timeout, bad reply).

    Never reaches API clients: the circuit breaker absorbs it and serves the
    decision from the in-process counter.
    """


class RateLimitExceededAppError(AppError):
    """A denied throttling decision, rendered as HTTP 429.

    Built by the decision translator; route code either raises it (FastAPI
    dependency) or returns its response directly (handler wrapper).
    """

    @property
    def retry_after_seconds(self) -> int:
        return int((self.details or {}).get("retry_after", 0))
