"""Remote fixed-window counter backed by a Redis-compatible REST service.

Commands are POSTed as JSON arrays (``["INCR", key]``) to a single endpoint
with bearer authorization; replies look like ``{"result": ...}``. Atomicity of
the count comes from the service's INCR. The expiry is set only when INCR
returns 1, so sustained traffic can never keep pushing a window's expiry out.
The INCR/EXPIRE pair is not atomic, which is acceptable: the expiry only has to
be set once near the start of the window.

Any failure (timeout, transport error, malformed endpoint URL, non-2xx,
unparsable or error reply) raises CounterBackendAppError. Nothing here
retries; the circuit breaker decides what to do next.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from app.adapters.rate_limit.base import AbstractCounter, RateLimitDecision
from app.core.errors import CounterBackendAppError
from app.schemas.policy import RateLimitPolicy

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit"


def window_index(now: float, window_seconds: int) -> int:
    """Index of the fixed window containing ``now``."""
    return int(now // window_seconds)


def build_window_key(key: str, index: int) -> str:
    """Storage key for one caller's counter in one window."""
    return f"{KEY_PREFIX}:{key}:{index}"


class RestRedisCounter(AbstractCounter):
    """Counter that stores one key per caller and window in the remote service."""

    name = "remote"

    def __init__(
        self,
        *,
        url: str,
        token: str,
        timeout_seconds: float = 2.0,
        clock: Callable[[], float] = time.time,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the REST client.

        Args:
            url: Command endpoint of the counter service.
            token: Bearer token.
            timeout_seconds: Bound for every request (connect, read, write, pool).
            clock: Time source function returning UNIX time in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).

        Raises:
            ValueError: If url/token are empty or the timeout is not positive.
        """
        if not url or not token:
            raise ValueError("url and token are required")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._url = url
        self._clock = clock
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    def execute(self, *command: str) -> Any:
        """Send one command and return its ``result``.

        Raises:
            CounterBackendAppError: On any transport or protocol failure.
        """
        try:
            response = self._client.post(self._url, json=list(command))
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise CounterBackendAppError(
                code="counter_backend_timeout",
                message=f"Counter service timed out on {command[0]}",
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise CounterBackendAppError(
                code="counter_backend_http_error",
                message=f"Counter service returned HTTP {exc.response.status_code}",
                details={"http_status": exc.response.status_code},
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            # InvalidURL (malformed endpoint setting) does not derive from HTTPError
            raise CounterBackendAppError(
                code="counter_backend_unreachable",
                message=f"Counter service request failed: {type(exc).__name__}",
            ) from exc
        except ValueError as exc:
            raise CounterBackendAppError(
                code="counter_backend_bad_response",
                message="Counter service returned invalid JSON",
            ) from exc

        if not isinstance(payload, dict) or "result" not in payload:
            error = payload.get("error") if isinstance(payload, dict) else None
            raise CounterBackendAppError(
                code="counter_backend_bad_response",
                message=f"Counter service rejected {command[0]}: {error or 'no result'}",
            )
        return payload["result"]

    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Count one hit for ``key`` in the remote service.

        Raises:
            ValueError: If key is empty.
            CounterBackendAppError: If either command fails.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        index = window_index(now, policy.window_seconds)
        window_key = build_window_key(key, index)

        result = self.execute("INCR", window_key)
        try:
            count = int(result)
        except (TypeError, ValueError) as exc:
            raise CounterBackendAppError(
                code="counter_backend_bad_response",
                message="Counter service returned a non-integer count",
            ) from exc

        if count == 1:
            self.execute("EXPIRE", window_key, str(policy.window_seconds))
            logger.debug(
                "rate_limit.remote_window_started",
                extra={"window_index": index, "window_s": policy.window_seconds},
            )

        return RateLimitDecision(
            allowed=count <= policy.max_requests,
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - count),
            window_ends_at=float((index + 1) * policy.window_seconds),
        )

    def close(self) -> None:
        self._client.close()
