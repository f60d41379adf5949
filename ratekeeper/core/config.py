"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

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


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit settings from environment."""

    return RateLimitSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


class RateLimitSettings(BaseSettings):
    """Rate limiter configuration.

    Only the parameters of the selected algorithm are used; the others keep
    their defaults. Parameter validation beyond basic bounds happens when the
    algorithm is constructed by the factory.
    """

    enabled: bool = Field(
        True,
        description="Enable rate limiting for protected routes",
    )
    algorithm: Literal["sliding_window", "token_bucket"] = Field(
        "sliding_window",
        description="Rate limiting algorithm (sliding_window or token_bucket)",
    )
    limit: int = Field(
        60,
        description="Maximum units per window (sliding_window)",
        ge=1,
    )
    window_ms: int = Field(
        60_000,
        description="Window length in milliseconds (sliding_window)",
        ge=1,
    )
    capacity: int = Field(
        60,
        description="Bucket capacity in units (token_bucket)",
        ge=1,
    )
    refill_rate_per_sec: float = Field(
        1.0,
        description="Tokens added per second (token_bucket)",
        gt=0,
    )
    namespace: str = Field(
        "default",
        description="Prefix isolating this limiter's keys within a shared store",
        min_length=1,
    )
    store: Literal["memory", "redis"] = Field(
        "memory",
        description="State store backend (memory or redis)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL (store=redis)",
    )
    redis_prefix: str = Field(
        "rl",
        description="Key prefix applied by the Redis store",
        min_length=1,
    )
    fail_open: bool = Field(
        False,
        description="Allow requests through when the state store is unavailable",
    )
    headers_standard: bool = Field(
        True,
        description="Emit RateLimit-* headers",
    )
    headers_legacy: bool = Field(
        False,
        description="Emit X-RateLimit-* headers",
    )
    headers_policy: bool = Field(
        False,
        description="Emit the RateLimit-Policy header",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log output format")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

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
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
