"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Rate, interval and burst are process-wide and immutable once a limiter has
been built from them; there is no per-key override.
"""

from __future__ import annotations

import os
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

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment."""

    return LimiterSettings()


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment."""

    return LogSettings()


class LimiterSettings(BaseSettings):
    """Leaky-bucket configuration shared by every key."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting on protected routes",
    )
    rate: int = Field(
        1,
        description="Allowance units restored per interval",
        ge=1,
    )
    interval_seconds: float = Field(
        1.0,
        description="Refill period in seconds corresponding to `rate`",
        gt=0,
    )
    burst: int = Field(
        10,
        description="Maximum allowance a bucket may hold",
        ge=1,
    )
    backend: str = Field(
        "memory",
        description="Storage backend for bucket state: memory or redis",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Connection URL used when backend=redis",
    )
    key_prefix: str = Field(
        "leakybucket:",
        description="Namespace prepended to every stored key",
    )
    key_ttl_seconds: int | None = Field(
        None,
        description="Expire idle bucket state after this many seconds (None keeps it)",
        ge=1,
    )
    lock_timeout_seconds: float = Field(
        5.0,
        description="Lease of the per-key lock held around read-modify-write",
        gt=0,
    )
    lock_blocking_timeout_seconds: float | None = Field(
        2.0,
        description="How long to wait for the per-key lock before failing",
    )
    socket_timeout_seconds: float | None = Field(
        2.0,
        description="Socket timeout for networked backends",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
