"""Counter backends for request throttling.

The limiter service talks to one AbstractCounter. Depending on configuration
that is either the in-process counter or the remote REST counter wrapped in a
circuit breaker that falls back to the in-process counter.
"""

from app.adapters.rate_limit.base import AbstractCounter, RateLimitDecision
from app.adapters.rate_limit.circuit_breaker import CircuitBreakerCounter, CircuitState
from app.adapters.rate_limit.factory import create_counter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowCounter
from app.adapters.rate_limit.remote import RestRedisCounter

__all__ = [
    "AbstractCounter",
    "CircuitBreakerCounter",
    "CircuitState",
    "InMemoryFixedWindowCounter",
    "RateLimitDecision",
    "RestRedisCounter",
    "create_counter",
]
