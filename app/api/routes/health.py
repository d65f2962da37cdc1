from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.rate_limit import get_rate_limiter
from app.schemas.rate_limit import HealthResponse
from app.services.rate_limiter_service import RateLimiterService

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(
    limiter: RateLimiterService = Depends(get_rate_limiter),
) -> HealthResponse:
    """Liveness check plus the active counter backend.

    Reports ``ok`` even while the circuit is open: the limiter keeps working on
    the in-process fallback, so a degraded remote store is not an outage.
    """

    return HealthResponse(status="ok", rate_limiter=limiter.health())
