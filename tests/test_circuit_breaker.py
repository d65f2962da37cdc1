"""Tests for the circuit breaker between the remote and in-process counters."""

import json
from unittest.mock import Mock

import httpx
import pytest

from app.adapters.rate_limit.circuit_breaker import CircuitBreakerCounter, CircuitState
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowCounter
from app.adapters.rate_limit.remote import RestRedisCounter
from app.schemas.policy import RateLimitPolicy

POLICY = RateLimitPolicy(max_requests=10, window_seconds=60)


class SwitchableTransport:
    """Counter service that can be made to fail; counts every invocation."""

    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy
        self.calls = 0
        self.values: dict[str, int] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if not self.healthy:
            return httpx.Response(503, text="unavailable")
        command = json.loads(request.content)
        if command[0] == "INCR":
            self.values[command[1]] = self.values.get(command[1], 0) + 1
            return httpx.Response(200, json={"result": self.values[command[1]]})
        return httpx.Response(200, json={"result": 1})


def _breaker(transport: SwitchableTransport, clock: Mock, threshold: int = 3):
    remote = RestRedisCounter(
        url="https://counter.example.test",
        token="tok",
        clock=clock,
        transport=httpx.MockTransport(transport),
    )
    local = InMemoryFixedWindowCounter(clock=clock)
    breaker = CircuitBreakerCounter(
        remote,
        local,
        failure_threshold=threshold,
        reset_seconds=30,
        clock=clock,
    )
    return breaker, local


def test_closed_circuit_uses_remote(clock: Mock) -> None:
    transport = SwitchableTransport()
    breaker, local = _breaker(transport, clock)

    decision = breaker.check("user-1", POLICY)

    assert decision.allowed is True
    assert decision.remaining == 9
    assert transport.calls == 2  # INCR + EXPIRE
    assert len(local) == 0
    assert breaker.state is CircuitState.CLOSED


def test_failures_fall_back_to_local_without_raising(clock: Mock) -> None:
    transport = SwitchableTransport(healthy=False)
    breaker, local = _breaker(transport, clock)

    decision = breaker.check("user-1", POLICY)

    assert decision.allowed is True
    assert decision.remaining == 9
    assert len(local) == 1
    assert breaker.state is CircuitState.CLOSED


def test_opens_after_threshold_and_skips_remote(clock: Mock) -> None:
    transport = SwitchableTransport(healthy=False)
    breaker, local = _breaker(transport, clock, threshold=3)

    for _ in range(3):
        breaker.check("user-1", POLICY)
    assert transport.calls == 3
    assert breaker.state is CircuitState.OPEN

    decision = breaker.check("user-1", POLICY)

    assert transport.calls == 3  # remote not attempted at all
    # served by the local counter, which has now seen 4 hits
    assert decision.remaining == POLICY.max_requests - 4
    assert decision.window_ends_at == 1060.0


def test_half_open_probe_after_reset_closes_on_success(clock: Mock) -> None:
    transport = SwitchableTransport(healthy=False)
    breaker, _ = _breaker(transport, clock)

    for _ in range(3):
        breaker.check("user-1", POLICY)

    clock.return_value = 1029.0
    breaker.check("user-1", POLICY)
    assert transport.calls == 3

    clock.return_value = 1030.0
    transport.healthy = True
    assert breaker.state is CircuitState.HALF_OPEN

    breaker.check("user-1", POLICY)

    assert transport.calls == 5  # INCR + EXPIRE against the remote
    assert breaker.state is CircuitState.CLOSED
    assert breaker.snapshot().consecutive_failures == 0


def test_half_open_probe_failure_reopens_with_fresh_period(clock: Mock) -> None:
    transport = SwitchableTransport(healthy=False)
    breaker, _ = _breaker(transport, clock)

    for _ in range(3):
        breaker.check("user-1", POLICY)

    clock.return_value = 1031.0
    breaker.check("user-1", POLICY)
    assert transport.calls == 4
    assert breaker.state is CircuitState.OPEN
    assert breaker.snapshot().open_until == 1061.0

    clock.return_value = 1060.0
    breaker.check("user-1", POLICY)
    assert transport.calls == 4


def test_success_resets_consecutive_failures(clock: Mock) -> None:
    transport = SwitchableTransport(healthy=False)
    breaker, _ = _breaker(transport, clock)

    breaker.check("user-1", POLICY)
    breaker.check("user-1", POLICY)
    transport.healthy = True
    breaker.check("user-1", POLICY)
    transport.healthy = False
    breaker.check("user-1", POLICY)
    breaker.check("user-1", POLICY)

    assert breaker.state is CircuitState.CLOSED
    assert breaker.snapshot().consecutive_failures == 2


def test_health_reports_remote_backend_and_state(clock: Mock) -> None:
    transport = SwitchableTransport(healthy=False)
    breaker, _ = _breaker(transport, clock, threshold=1)

    assert breaker.health() == {"backend": "remote", "circuit_state": "closed"}
    breaker.check("user-1", POLICY)
    assert breaker.health() == {"backend": "remote", "circuit_state": "open"}


def test_open_circuit_logs_warning(clock: Mock, caplog: pytest.LogCaptureFixture) -> None:
    transport = SwitchableTransport(healthy=False)
    breaker, _ = _breaker(transport, clock, threshold=2)

    with caplog.at_level("WARNING", logger="app.adapters.rate_limit.circuit_breaker"):
        breaker.check("user-1", POLICY)
        breaker.check("user-1", POLICY)

    messages = [r.getMessage() for r in caplog.records]
    assert messages.count("rate_limit.remote_failed") == 2
    assert messages.count("rate_limit.circuit_opened") == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"failure_threshold": 0},
        {"reset_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    local = InMemoryFixedWindowCounter()
    with pytest.raises(ValueError):
        CircuitBreakerCounter(local, InMemoryFixedWindowCounter(), **kwargs)
