"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Remote counter credentials (UPSTASH_REDIS_REST_URL / UPSTASH_REDIS_REST_TOKEN)
are optional. When either is missing the limiter runs on the in-process
counter only.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Environments where running without the shared counter store deserves a warning
PRODUCTION_LIKE_ENVS = frozenset({"staging", "production"})

PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    rate_limit_enabled: bool = Field(
        True,
        description="Enable request throttling on protected routes",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Tuning for the counter backends and the circuit breaker."""

    failure_threshold: int = Field(
        3,
        description="Consecutive remote failures before the circuit opens",
        ge=1,
    )
    circuit_reset_seconds: float = Field(
        30.0,
        description="How long the circuit stays open before probing the remote store again",
        gt=0,
    )
    remote_timeout_seconds: float = Field(
        2.0,
        description="Timeout for each call to the remote counter service",
        gt=0,
    )
    local_max_entries: int = Field(
        10_000,
        description="Maximum number of keys held by the in-process counter",
        ge=1,
    )
    local_sweep_interval_seconds: float = Field(
        60.0,
        description="Minimum interval between sweeps of elapsed in-process windows",
        gt=0,
    )
    local_sweep_batch_size: int = Field(
        1_000,
        description="Entries inspected per sweep of the in-process counter",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class RemoteCounterSettings(BaseSettings):
    """Credentials for the Redis-compatible REST counter service."""

    url: str | None = Field(
        None,
        description="Command endpoint of the REST counter service",
    )
    token: str | None = Field(
        None,
        description="Bearer token for the REST counter service",
    )

    model_config = SettingsConfigDict(
        env_prefix="UPSTASH_REDIS_REST_",
        case_sensitive=False,
    )

    @property
    def configured(self) -> bool:
        return bool(self.url and self.token)


def _build_log_settings() -> LogSettings:
    return LogSettings()  # type: ignore[call-arg]


def _build_app_settings() -> AppSettings:
    return AppSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()  # type: ignore[call-arg]


def _build_remote_settings() -> RemoteCounterSettings:
    return RemoteCounterSettings()  # type: ignore[call-arg]


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development (in-process counter is fine)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (expects the remote counter)
    - production: Production deployment (expects the remote counter)
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    remote: RemoteCounterSettings = Field(default_factory=_build_remote_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_production_like(self) -> bool:
        return self.app_env.lower() in PRODUCTION_LIKE_ENVS


# Global settings instance - composed from domain-specific settings
settings = Settings()
