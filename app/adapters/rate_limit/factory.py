"""Factory selecting the counter backend from configuration."""

from __future__ import annotations

import logging

from app.adapters.rate_limit.base import AbstractCounter
from app.adapters.rate_limit.circuit_breaker import CircuitBreakerCounter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowCounter
from app.adapters.rate_limit.remote import RestRedisCounter
from app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def create_counter(cfg: Settings | None = None) -> AbstractCounter:
    """Build the counter backend for this process.

    With remote credentials configured, returns the remote counter behind a
    circuit breaker whose fallback is an in-process counter. Without them,
    returns the in-process counter alone; that is a supported mode, but it is
    logged as a warning in staging/production where several instances would
    each enforce their own limits.

    Args:
        cfg: Settings to read; defaults to the global settings.

    Returns:
        AbstractCounter: Configured counter backend.
    """
    cfg = cfg or default_settings
    tuning = cfg.rate_limit

    local = InMemoryFixedWindowCounter(
        max_entries=tuning.local_max_entries,
        sweep_interval_seconds=tuning.local_sweep_interval_seconds,
        sweep_batch_size=tuning.local_sweep_batch_size,
    )

    if not cfg.remote.configured:
        log = logger.warning if cfg.is_production_like else logger.info
        log(
            "rate_limit.remote_not_configured",
            extra={
                "app_env": cfg.app_env,
                "backend": local.name,
                "hint": "Set UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN "
                "to share limits across instances",
            },
        )
        return local

    remote = RestRedisCounter(
        url=cfg.remote.url or "",
        token=cfg.remote.token or "",
        timeout_seconds=tuning.remote_timeout_seconds,
    )
    logger.info(
        "rate_limit.backend_selected",
        extra={
            "backend": remote.name,
            "fallback": local.name,
            "failure_threshold": tuning.failure_threshold,
            "open_s": tuning.circuit_reset_seconds,
            "timeout_s": tuning.remote_timeout_seconds,
        },
    )
    return CircuitBreakerCounter(
        remote,
        local,
        failure_threshold=tuning.failure_threshold,
        reset_seconds=tuning.circuit_reset_seconds,
    )
