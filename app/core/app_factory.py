"""Application factory for the FastAPI app.

This is the composition root: it selects the counter backend once, builds the
RateLimiterService around it and stores it on ``app.state.rate_limiter`` for
route dependencies. The backend is closed on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.factory import create_counter
from app.api.routes import health_router, rate_limit_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.services.rate_limiter_service import RateLimiterService

logger = logging.getLogger(__name__)


def create_app(limiter: RateLimiterService | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter: Limiter service to expose; built around the counter backend
            selected from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so backend selection logs are formatted as desired
    configure_logging(settings.log)

    if limiter is None:
        limiter = RateLimiterService(create_counter(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        limiter.close()
        logger.info("rate_limit.backend_closed")

    app = FastAPI(
        title="Training Facility API",
        description=(
            "Booking, messaging and upload endpoints for the training facility, "
            "throttled per user or client address."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.rate_limiter = limiter

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    return app
