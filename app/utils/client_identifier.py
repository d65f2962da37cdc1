"""Caller identification for throttling.

An authenticated user id wins over anything network-derived: it is more precise
and does not punish users who share a NAT or proxy. Without one, the first hop
of X-Forwarded-For is used, then X-Real-IP, then a fixed sentinel.
"""

from __future__ import annotations

import hashlib

from fastapi import Request

UNKNOWN_CLIENT = "unknown"

FORWARDED_FOR_HEADER = "X-Forwarded-For"
REAL_IP_HEADER = "X-Real-IP"


def resolve_client_id(
    explicit_id: str | None = None,
    forwarded_for: str | None = None,
    real_ip: str | None = None,
) -> str:
    """Return the key that scopes a rate limit to one caller.

    Args:
        explicit_id: Authenticated identity (user id), returned verbatim.
        forwarded_for: Raw X-Forwarded-For header value.
        real_ip: Raw X-Real-IP header value.

    Returns:
        Caller key; ``"unknown"`` when nothing identifies the caller.

    Examples:
        >>> resolve_client_id("user-1", "10.0.0.1")
        'user-1'
        >>> resolve_client_id(None, "203.0.113.7, 10.0.0.1", "10.0.0.2")
        '203.0.113.7'
        >>> resolve_client_id(None, None, "10.0.0.2")
        '10.0.0.2'
        >>> resolve_client_id()
        'unknown'
    """

    if explicit_id:
        return explicit_id

    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    if real_ip and real_ip.strip():
        return real_ip.strip()

    return UNKNOWN_CLIENT


def resolve_client_id_from_request(request: Request, explicit_id: str | None = None) -> str:
    """Resolve the caller key from a FastAPI request.

    ``explicit_id`` overrides the user id an upstream auth layer may have left
    on ``request.state.user_id``.
    """

    user_id = explicit_id or getattr(request.state, "user_id", None)
    return resolve_client_id(
        str(user_id) if user_id else None,
        request.headers.get(FORWARDED_FOR_HEADER),
        request.headers.get(REAL_IP_HEADER),
    )


def hash_client_key(key: str) -> str:
    """Hash a caller key for logging without exposing ids or addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]
