"""Throttling policies and the preset catalogue used by the API routes."""

from __future__ import annotations

from dataclasses import dataclass

from app.core.errors import ValidationAppError


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable throttling rule.

    Attributes:
        max_requests: Quota per window.
        window_seconds: Window length in seconds.
        namespace: Separates unrelated policies that share a caller key
            (e.g. login attempts vs. booking attempts from the same user).
    """

    max_requests: int
    window_seconds: int
    namespace: str | None = None

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

    def scoped_key(self, client_id: str) -> str:
        """Prefix a caller key with this policy's namespace, if any."""
        return f"{self.namespace}:{client_id}" if self.namespace else client_id


GENERAL = RateLimitPolicy(max_requests=60, window_seconds=60)
AUTH = RateLimitPolicy(max_requests=5, window_seconds=60, namespace="auth")
MESSAGING = RateLimitPolicy(max_requests=30, window_seconds=60, namespace="message")
UPLOAD = RateLimitPolicy(max_requests=10, window_seconds=60, namespace="upload")
STRICT = RateLimitPolicy(max_requests=3, window_seconds=60, namespace="strict")
BOOKING = RateLimitPolicy(max_requests=10, window_seconds=60, namespace="booking")
# Guest bookings are also capped per e-mail address: 3 per day
GUEST_BOOKING_EMAIL = RateLimitPolicy(
    max_requests=3,
    window_seconds=86_400,
    namespace="guest-booking-email",
)

PRESETS: dict[str, RateLimitPolicy] = {
    "general": GENERAL,
    "auth": AUTH,
    "messaging": MESSAGING,
    "upload": UPLOAD,
    "strict": STRICT,
    "booking": BOOKING,
    "guest_booking_email": GUEST_BOOKING_EMAIL,
}


def get_preset(name: str) -> RateLimitPolicy:
    """Look up a preset by name (case-insensitive).

    Raises:
        ValidationAppError: If no preset has that name.
    """

    policy = PRESETS.get(name.strip().lower())
    if policy is None:
        raise ValidationAppError(
            code="unknown_rate_limit_preset",
            message=f"Unknown rate limit preset: '{name}'",
            details={"hint": f"Known presets: {', '.join(sorted(PRESETS))}"},
        )
    return policy
