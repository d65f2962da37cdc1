"""Pydantic schemas for rate limit status and health responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitStatus(BaseModel):
    """Quota snapshot for a caller under one policy.

    Produced without touching the counter store, so ``remaining`` and
    ``window_ends_at`` are the policy defaults rather than live values.
    """

    limit: int = Field(..., description="Max requests per window.")
    remaining: int = Field(
        ..., description="Requests left in the window (policy default, not live)."
    )
    window_ends_at: float = Field(
        ..., description="UNIX epoch seconds at which a window opened now would end."
    )
    estimated: bool = Field(
        True,
        description="Always true: the probe does not read stored counters.",
    )


class LimiterHealth(BaseModel):
    """Which counter backend is active and, if remote, the breaker state."""

    backend: str = Field(..., description="Active counter backend label.")
    circuit_state: str | None = Field(
        default=None,
        description="closed, open or half_open when a circuit breaker is active.",
    )


class HealthResponse(BaseModel):
    status: str = "ok"
    rate_limiter: LimiterHealth | None = None
