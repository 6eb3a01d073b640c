"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


DEFAULT_REQUEST_LIMIT = 5000
DEFAULT_PERIOD_SECONDS = 3600
DEFAULT_COOKIE_NAME = "sid"
DEFAULT_SESSION_KEY = "rate-api-id"
DEFAULT_KEY_PREFIX = "rate-limit:"
DEFAULT_EXEMPT_PATHS = "/health,/docs,/redoc,/openapi.json"


class FailurePolicy(str, Enum):
    """What the middleware does when it cannot reach a decision.

    OPEN admits the request unmetered, CLOSED denies it.
    """

    OPEN = "open"
    CLOSED = "closed"


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return LimiterSettings()  # type: ignore[call-arg]


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class LimiterSettings(BaseSettings):
    """Rate limiter policy and client key resolution."""

    enabled: bool = Field(
        True,
        description="Install the rate limiting middleware",
    )
    limit: int = Field(
        DEFAULT_REQUEST_LIMIT,
        description="Maximum number of requests admitted per window (per client key)",
        ge=1,
    )
    period_seconds: int = Field(
        DEFAULT_PERIOD_SECONDS,
        description="Window length in seconds",
        ge=1,
    )
    key_prefix: str = Field(
        DEFAULT_KEY_PREFIX,
        description="Namespace prepended to client keys in the counting store",
    )
    header_name: str | None = Field(
        None,
        description="Request header holding the client key (e.g. X-API-Key)",
    )
    cookie_name: str = Field(
        DEFAULT_COOKIE_NAME,
        description="Cookie holding the client key",
    )
    session_enabled: bool = Field(
        False,
        description="Resolve the client key from the request session",
    )
    session_key: str = Field(
        DEFAULT_SESSION_KEY,
        description="Session attribute holding the client key",
    )
    client_address_fallback: bool = Field(
        True,
        description="Fall back to the client network address when nothing else resolves",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For hop as the client address",
    )
    unresolved_key_policy: FailurePolicy = Field(
        FailurePolicy.OPEN,
        description="Admit (open) or deny (closed) requests without a client key",
    )
    store_error_policy: FailurePolicy = Field(
        FailurePolicy.CLOSED,
        description="Admit (open) or deny (closed) requests when the store fails",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers on responses",
    )
    exempt_paths: str = Field(
        DEFAULT_EXEMPT_PATHS,
        description="Comma-separated request paths that are never metered",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection to the shared counting store."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Socket timeout for store round trips",
        gt=0,
    )
    max_connections: int | None = Field(
        None,
        description="Upper bound on pooled connections (None for the client default)",
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
