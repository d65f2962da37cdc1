"""Rate limiter service: the single decision point used by the HTTP layer.

One instance is built in the application factory and shared through
``app.state``. It holds exactly one counter backend for the process lifetime
and never inspects which concrete backend that is.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractCounter, RateLimitDecision
from app.core.errors import RateLimitExceededAppError
from app.schemas.policy import RateLimitPolicy
from app.schemas.rate_limit import LimiterHealth, RateLimitStatus
from app.utils.client_identifier import UNKNOWN_CLIENT, hash_client_key

logger = logging.getLogger(__name__)


def retry_after_seconds(window_ends_at: float, now: float) -> int:
    """Whole seconds until the window ends (never negative)."""
    return max(0, math.ceil(window_ends_at - now))


def translate_decision(
    decision: RateLimitDecision,
    *,
    now: float | None = None,
) -> RateLimitExceededAppError | None:
    """Turn a denied decision into a structured throttling error.

    Args:
        decision: Decision returned by the limiter.
        now: Current UNIX time in seconds; defaults to ``time.time()``.

    Returns:
        None when the request is allowed, otherwise a RateLimitExceededAppError
        carrying the retry-after hint and quota metadata.
    """
    if decision.allowed:
        return None

    current = time.time() if now is None else now
    retry_after = retry_after_seconds(decision.window_ends_at, current)
    return RateLimitExceededAppError(
        code="rate_limit_exceeded",
        message="Too many requests. Please try again later.",
        details={
            "retry_after": retry_after,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "reset_at": int(math.ceil(decision.window_ends_at)),
        },
    )


class RateLimiterService:
    """Evaluates throttling policies against one counter backend."""

    def __init__(
        self,
        counter: AbstractCounter,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._counter = counter
        self._clock = clock

    def evaluate(self, policy: RateLimitPolicy, client_id: str) -> RateLimitDecision:
        """Count one request from ``client_id`` against ``policy``.

        Remote backend failures are absorbed by the counter (circuit breaker
        fallback), so the only negative outcome is ``allowed=False``.

        Args:
            policy: Throttling rule to apply.
            client_id: Caller key from the client identifier; an empty key
                counts against the shared "unknown" bucket.

        Returns:
            RateLimitDecision for this request.
        """
        key = policy.scoped_key(client_id or UNKNOWN_CLIENT)
        decision = self._counter.check(key, policy)

        log_extra = {
            "key_hash": hash_client_key(key),
            "namespace": policy.namespace,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "window_s": policy.window_seconds,
        }
        if decision.allowed:
            logger.debug("rate_limit.allowed", extra=log_extra)
        else:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    **log_extra,
                    "retry_after_s": retry_after_seconds(
                        decision.window_ends_at, self._clock()
                    ),
                },
            )
        return decision

    def translate(self, decision: RateLimitDecision) -> RateLimitExceededAppError | None:
        """:func:`translate_decision` against this service's clock."""
        return translate_decision(decision, now=self._clock())

    def status(self, policy: RateLimitPolicy, client_id: str | None = None) -> RateLimitStatus:
        """Report quota for a caller without counting a request.

        Known limitation: the counter store is not read. The result is the
        policy default (full quota, window starting now) and is flagged
        ``estimated=True``; it does not reflect requests already made.

        Args:
            policy: Throttling rule to describe.
            client_id: Caller key; accepted for interface symmetry, unused.
        """
        return RateLimitStatus(
            limit=policy.max_requests,
            remaining=policy.max_requests,
            window_ends_at=self._clock() + policy.window_seconds,
            estimated=True,
        )

    def health(self) -> LimiterHealth:
        return LimiterHealth(**self._counter.health())

    def close(self) -> None:
        self._counter.close()
