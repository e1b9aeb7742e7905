"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
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


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items.

    Examples:
        >>> parse_csv("a, b ,,c")
        ['a', 'b', 'c']
        >>> parse_csv(None)
        []
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )
    cors_allowed_origins: str = Field(
        "http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of origins allowed by CORS",
    )
    host: str = Field("0.0.0.0", description="Bind address when run with uvicorn")
    port: int = Field(8000, description="Listen port when run with uvicorn", ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class UpstreamSettings(BaseSettings):
    """Upstream API the relay forwards cache misses to."""

    base_url: str = Field(
        "https://api.inaturalist.org",
        description="Scheme and host of the upstream API",
    )
    route_prefix: str = Field(
        "/api/inat",
        description="Inbound path prefix stripped before forwarding",
    )
    scope: str = Field(
        "inat_api",
        description="Rate limit scope shared by every relay instance for this upstream",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Upstream request timeout in seconds",
        gt=0,
    )
    user_agent: str = Field("Proxy-Cache/1.0", description="User-Agent sent upstream")
    accept: str = Field("application/json", description="Accept header sent upstream")
    default_content_type: str = Field(
        "application/json",
        description="Content type recorded when the upstream omits one",
    )
    excluded_query_params: str = Field(
        "_",
        description="Comma-separated query parameters ignored for cache keys and upstream calls",
    )

    model_config = SettingsConfigDict(
        env_prefix="UPSTREAM_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Response cache configuration."""

    ttl_seconds: int = Field(
        60 * 24 * 60 * 60,
        description="Time-to-live of cached upstream responses (default 60 days)",
        ge=1,
    )
    max_entries: int | None = Field(
        None,
        description="Maximum cached responses; least-recently-inserted is evicted (None for unlimited)",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Global upstream rate limit configuration."""

    requests_per_second: float = Field(
        1.0,
        description="Upstream requests allowed per second across all relay instances",
        gt=0,
    )
    max_retries: int = Field(
        30,
        description="Acquisition attempts before failing with rate_limit_exceeded",
        ge=1,
    )
    retry_delay_ms: int = Field(
        100,
        description="Base wait between acquisition attempts in milliseconds",
        ge=0,
    )
    backoff_step_ms: int = Field(
        50,
        description="Linear backoff added per failed attempt in milliseconds",
        ge=0,
    )
    acquire_timeout_seconds: float | None = Field(
        30.0,
        description="Caller-side bound on the whole acquisition loop (None disables)",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Shared atomic store holding rate limit timestamps."""

    backend: str = Field(
        "memory",
        description="Atomic store backend: memory (single instance) or redis (shared)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL when backend=redis",
    )
    key_prefix: str = Field(
        "rate_limit",
        description="Namespace prefix for rate limit keys",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
