"""Counter backend interface.

The limiter service depends on this abstraction only. The in-process counter,
the remote REST counter and the circuit breaker that combines them all
implement it, so the service never needs to know which one it holds.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.schemas.policy import RateLimitPolicy


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of counting one request against a policy.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 when blocked).
        window_ends_at: UNIX epoch seconds at which the current window ends.
    """

    allowed: bool
    limit: int
    remaining: int
    window_ends_at: float


class AbstractCounter(ABC):
    """Fixed-window counter store."""

    #: Short backend label used in logs and the health endpoint
    name: str = "abstract"

    @abstractmethod
    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Count one hit for ``key`` and decide whether it is within ``policy``.

        Args:
            key: Namespaced caller key (e.g. ``booking:user-42``).
            policy: Quota and window to apply.

        Returns:
            RateLimitDecision for this hit.
        """
        raise NotImplementedError

    def health(self) -> dict[str, str | None]:
        """Describe the backend for the health endpoint."""
        return {"backend": self.name, "circuit_state": None}

    def close(self) -> None:
        """Release any resources held by the backend."""
