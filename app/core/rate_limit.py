"""Rate limiting for FastAPI routes.

Two ways to protect a route, both backed by the RateLimiterService stored on
``app.state.rate_limiter`` by the application factory:

- ``Depends(enforce_rate_limit(policy))`` raises RateLimitExceededAppError on
  denial; the global handler renders it as 429.
- ``@rate_limited(policy)`` (or ``wrap(handler, policy)``) wraps an
  ``async def handler(request)`` and returns the 429 response itself without
  calling the handler.

The caller key is the authenticated user id left on ``request.state.user_id``
by the auth layer when present, otherwise the forwarded client address.
Counters are synchronous (the remote one does blocking HTTP), so they run in
the threadpool to keep the event loop free.
"""

from __future__ import annotations

import functools
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.concurrency import run_in_threadpool

from app.adapters.rate_limit.base import RateLimitDecision
from app.core.config import settings
from app.core.errors import RateLimitExceededAppError
from app.core.exception_handlers import build_error_response
from app.schemas.policy import RateLimitPolicy
from app.services.rate_limiter_service import RateLimiterService
from app.utils.client_identifier import resolve_client_id_from_request

Handler = Callable[[Request], Awaitable[Response]]


def get_rate_limiter(request: Request) -> RateLimiterService:
    """FastAPI dependency returning the application's limiter service.

    Raises:
        RuntimeError: If the app was not built by ``create_app``.
    """
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError(
            "Rate limiter not initialized. Build the app with create_app()."
        )
    return limiter


async def check_request(
    request: Request,
    policy: RateLimitPolicy,
    explicit_id: str | None = None,
) -> RateLimitDecision:
    """Count the current request against ``policy``.

    Args:
        request: Incoming request; identifies the caller.
        policy: Throttling rule to apply.
        explicit_id: Caller identity overriding the request-derived one.

    Returns:
        The allowing decision.

    Raises:
        RateLimitExceededAppError: If the caller is over quota.
    """
    limiter = get_rate_limiter(request)
    client_id = resolve_client_id_from_request(request, explicit_id)
    decision = await run_in_threadpool(limiter.evaluate, policy, client_id)
    error = limiter.translate(decision)
    if error is not None:
        raise error
    return decision


def enforce_rate_limit(
    policy: RateLimitPolicy,
) -> Callable[[Request], Awaitable[RateLimitDecision | None]]:
    """Build a FastAPI dependency enforcing ``policy``.

    Usage:
        @router.post("/bookings", dependencies=[Depends(enforce_rate_limit(BOOKING))])
        async def create_booking(...): ...

    Args:
        policy: Throttling rule for the route.

    Returns:
        Dependency callable. It returns the decision (None when throttling is
        disabled) and raises RateLimitExceededAppError on denial.
    """

    async def dependency(request: Request) -> RateLimitDecision | None:
        if not settings.app.rate_limit_enabled:
            return None

        return await check_request(request, policy)

    return dependency


def wrap(handler: Handler, policy: RateLimitPolicy) -> Handler:
    """Wrap ``handler`` so denied requests get a 429 response instead.

    Args:
        handler: ``async def handler(request) -> Response``.
        policy: Throttling rule to apply.

    Returns:
        Handler with the same signature.
    """

    @functools.wraps(handler)
    async def wrapped(request: Request) -> Response:
        if settings.app.rate_limit_enabled:
            try:
                await check_request(request, policy)
            except RateLimitExceededAppError as exc:
                return build_error_response(exc)
        return await handler(request)

    return wrapped


def rate_limited(policy: RateLimitPolicy) -> Callable[[Handler], Handler]:
    """Decorator form of :func:`wrap`."""

    def decorator(handler: Handler) -> Handler:
        return wrap(handler, policy)

    return decorator
