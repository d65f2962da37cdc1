from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from app.core.rate_limit import get_rate_limiter
from app.schemas.policy import get_preset
from app.schemas.rate_limit import RateLimitStatus
from app.services.rate_limiter_service import RateLimiterService
from app.utils.client_identifier import resolve_client_id_from_request

router = APIRouter(tags=["Rate limit"])


@router.get("/rate-limit/status", response_model=RateLimitStatus)
def rate_limit_status(
    request: Request,
    preset: str = Query("general", description="Preset name, e.g. general, auth, booking"),
    limiter: RateLimiterService = Depends(get_rate_limiter),
) -> RateLimitStatus:
    """Describe the quota of a preset for the calling client.

    Does not count as a request. The values are the preset's defaults, not
    the caller's live counter (see ``estimated``).

    Raises:
        ValidationAppError: Unknown preset (rendered as 400).
    """
    policy = get_preset(preset)
    return limiter.status(policy, resolve_client_id_from_request(request))
