"""Circuit breaker between the remote counter and the in-process fallback.

States:
- CLOSED: every call goes to the primary (remote) counter.
- OPEN: after ``failure_threshold`` consecutive primary failures, calls are
  served by the fallback until ``open_until``; the primary is not contacted.
- HALF_OPEN: once ``open_until`` has passed, the next call probes the primary.
  Success closes the circuit, failure re-opens it for another period.

The breaker bounds the latency and error impact of a struggling remote store;
it is a heuristic, not a consistency mechanism. Failure counts may be slightly
off under heavy concurrency since the primary call runs outside the lock.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

from app.adapters.rate_limit.base import AbstractCounter, RateLimitDecision
from app.core.errors import CounterBackendAppError
from app.schemas.policy import RateLimitPolicy

logger = logging.getLogger(__name__)


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of the breaker for health reporting."""

    state: CircuitState
    consecutive_failures: int
    open_until: float


class CircuitBreakerCounter(AbstractCounter):
    """Counter that prefers ``primary`` and degrades to ``fallback``."""

    name = "circuit_breaker"

    def __init__(
        self,
        primary: AbstractCounter,
        fallback: AbstractCounter,
        *,
        failure_threshold: int = 3,
        reset_seconds: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if reset_seconds <= 0:
            raise ValueError("reset_seconds must be > 0")

        self._primary = primary
        self._fallback = fallback
        self._failure_threshold = failure_threshold
        self._reset_seconds = reset_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._open_until = 0.0

    @property
    def state(self) -> CircuitState:
        return self.snapshot().state

    def snapshot(self) -> BreakerSnapshot:
        now = self._clock()
        with self._lock:
            failures = self._consecutive_failures
            open_until = self._open_until
        if failures < self._failure_threshold:
            state = CircuitState.CLOSED
        elif now < open_until:
            state = CircuitState.OPEN
        else:
            state = CircuitState.HALF_OPEN
        return BreakerSnapshot(
            state=state,
            consecutive_failures=failures,
            open_until=open_until,
        )

    def _is_open(self, now: float) -> bool:
        with self._lock:
            return (
                self._consecutive_failures >= self._failure_threshold
                and now < self._open_until
            )

    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        now = self._clock()
        if self._is_open(now):
            return self._fallback.check(key, policy)

        try:
            decision = self._primary.check(key, policy)
        except CounterBackendAppError as exc:
            self._record_failure(now, exc)
            return self._fallback.check(key, policy)

        self._record_success()
        return decision

    def _record_success(self) -> None:
        with self._lock:
            was_tripped = self._consecutive_failures >= self._failure_threshold
            self._consecutive_failures = 0
            self._open_until = 0.0
        if was_tripped:
            logger.info(
                "rate_limit.circuit_closed",
                extra={"backend": self._primary.name},
            )

    def _record_failure(self, now: float, exc: CounterBackendAppError) -> None:
        with self._lock:
            self._consecutive_failures += 1
            failures = self._consecutive_failures
            opened = failures >= self._failure_threshold
            if opened:
                self._open_until = now + self._reset_seconds

        logger.warning(
            "rate_limit.remote_failed",
            extra={
                "backend": self._primary.name,
                "error_code": exc.code,
                "error_message": exc.message,
                "consecutive_failures": failures,
            },
        )
        if opened:
            logger.warning(
                "rate_limit.circuit_opened",
                extra={
                    "backend": self._primary.name,
                    "fallback": self._fallback.name,
                    "failure_threshold": self._failure_threshold,
                    "open_s": self._reset_seconds,
                },
            )

    def health(self) -> dict[str, str | None]:
        return {"backend": self._primary.name, "circuit_state": self.state.value}

    def close(self) -> None:
        self._primary.close()
        self._fallback.close()
