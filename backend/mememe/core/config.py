"""Application configuration.

Environment variables are loaded from .env file and can be overridden.
All settings have sensible defaults for local development.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_MEME_COMMUNITIES = [
    "memes",
    "dankmemes",
    "MemeEconomy",
    "wholesomememes",
    "PrequelMemes",
    "HistoryMemes",
    "ProgrammerHumor",
    "AdviceAnimals",
    "reactiongifs",
    "funny",
]


def _valkey_alias(env_name: str) -> AliasChoices:
    """Support both VALKEY_* and REDIS_* env var names for compatibility."""
    redis_name = env_name.replace("VALKEY_", "REDIS_")
    return AliasChoices(redis_name, env_name)


def _split_csv(value: Any) -> list[str]:
    """Accept a comma-separated string, a JSON array string, or a list."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            return [str(item).strip() for item in json.loads(stripped)]
        return [item.strip() for item in stripped.split(",") if item.strip()]
    return list(value) if value else []


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # Infrastructure
    # ==========================================================================

    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment: 'development', 'staging', or 'production'.",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Unset means the service runs with the in-process cache tier only.
    valkey_url: str | None = Field(
        default=None,
        validation_alias=_valkey_alias("VALKEY_URL"),
    )
    valkey_socket_connect_timeout_seconds: float = Field(
        default=2.0,
        validation_alias=_valkey_alias("VALKEY_SOCKET_CONNECT_TIMEOUT_SECONDS"),
        gt=0,
    )
    valkey_socket_timeout_seconds: float = Field(
        default=2.0,
        validation_alias=_valkey_alias("VALKEY_SOCKET_TIMEOUT_SECONDS"),
        gt=0,
    )

    # ==========================================================================
    # Cache TTLs (seconds)
    # ==========================================================================

    cache_default_ttl_seconds: int = Field(
        default=300, alias="CACHE_DEFAULT_TTL_SECONDS"
    )
    # Generated captions go stale quickly
    cache_captions_ttl_seconds: int = Field(
        default=300, alias="CACHE_CAPTIONS_TTL_SECONDS"
    )
    # Rendered image URLs are stable for a template + text combination
    cache_image_url_ttl_seconds: int = Field(
        default=86400, alias="CACHE_IMAGE_URL_TTL_SECONDS"
    )

    # ==========================================================================
    # Cache Behavior
    # ==========================================================================

    cache_lru_max_entries: int = Field(
        default=1000, alias="CACHE_LRU_MAX_ENTRIES", ge=1
    )
    cache_circuit_breaker_timeout_seconds: float = Field(
        default=5.0, alias="CACHE_CIRCUIT_BREAKER_TIMEOUT_SECONDS", ge=0.0
    )

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================

    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_window_seconds: int = Field(
        default=60, alias="RATE_LIMIT_WINDOW_SECONDS", gt=0
    )
    rate_limit_max_requests: int = Field(
        default=10, alias="RATE_LIMIT_MAX_REQUESTS", gt=0
    )
    rate_limit_max_tracked_clients: int = Field(
        default=1000, alias="RATE_LIMIT_MAX_TRACKED_CLIENTS", ge=1
    )
    rate_limit_exempt_paths: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["/metrics", "/api/v1/health"],
        alias="RATE_LIMIT_EXEMPT_PATHS",
    )

    # ==========================================================================
    # Trending Template Catalog
    # ==========================================================================

    template_cache_ttl_seconds: int = Field(
        default=6 * 3600, alias="TEMPLATE_CACHE_TTL_SECONDS"
    )
    template_cache_key: str = Field(
        default="trending_templates_v2", alias="TEMPLATE_CACHE_KEY"
    )
    template_cache_file_path: str = Field(
        default=".cache/templates.json", alias="TEMPLATE_CACHE_FILE_PATH"
    )
    template_catalog_max_size: int = Field(
        default=200, alias="TEMPLATE_CATALOG_MAX_SIZE", ge=1
    )
    template_provider_only_limit: int = Field(
        default=50, alias="TEMPLATE_PROVIDER_ONLY_LIMIT", ge=0
    )
    template_fallback_catalog_size: int = Field(
        default=100, alias="TEMPLATE_FALLBACK_CATALOG_SIZE", ge=1
    )
    template_synthetic_upvote_threshold: int = Field(
        default=500, alias="TEMPLATE_SYNTHETIC_UPVOTE_THRESHOLD", ge=0
    )
    template_admin_fresh_window_seconds: int = Field(
        default=2 * 3600, alias="TEMPLATE_ADMIN_FRESH_WINDOW_SECONDS", ge=0
    )
    template_refresh_interval_hours: float = Field(
        default=6, alias="TEMPLATE_REFRESH_INTERVAL_HOURS", gt=0
    )
    template_refresh_scheduler_enabled: bool = Field(
        default=False, alias="TEMPLATE_REFRESH_SCHEDULER_ENABLED"
    )
    template_cache_warmup_on_startup: bool = Field(
        default=False, alias="TEMPLATE_CACHE_WARMUP_ON_STARTUP"
    )

    # ==========================================================================
    # Template Sources
    # ==========================================================================

    imgflip_api_url: str = Field(
        default="https://api.imgflip.com", alias="IMGFLIP_API_URL"
    )
    imgflip_timeout_seconds: float = Field(
        default=10.0, alias="IMGFLIP_TIMEOUT_SECONDS", gt=0
    )
    reddit_base_url: str = Field(
        default="https://www.reddit.com", alias="REDDIT_BASE_URL"
    )
    reddit_timeout_seconds: float = Field(
        default=8.0, alias="REDDIT_TIMEOUT_SECONDS", gt=0
    )
    reddit_user_agent: str = Field(
        default="MemeMe/1.0 (Template Fetcher)", alias="REDDIT_USER_AGENT"
    )
    reddit_post_limit: int = Field(
        default=15, alias="REDDIT_POST_LIMIT", ge=1, le=100
    )
    reddit_timeframe: str = Field(default="day", alias="REDDIT_TIMEFRAME")
    # Ordered by expected quality/popularity
    meme_communities: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_MEME_COMMUNITIES),
        alias="MEME_COMMUNITIES",
    )

    # ==========================================================================
    # Admin / Cron
    # ==========================================================================

    admin_secret: str | None = Field(default=None, alias="ADMIN_SECRET")
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")

    # ==========================================================================
    # CORS
    # ==========================================================================

    cors_allow_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_origin_regex: str | None = Field(
        default=None, alias="CORS_ALLOW_ORIGIN_REGEX"
    )

    # ==========================================================================
    # OpenTelemetry (optional)
    # ==========================================================================

    otel_enabled: bool = Field(default=False, alias="OTEL_ENABLED")
    otel_service_name: str = Field(default="mememe-backend", alias="OTEL_SERVICE_NAME")
    otel_service_version: str = Field(default="0.1.0", alias="OTEL_SERVICE_VERSION")
    otel_exporter_otlp_endpoint: str = Field(
        default="http://jaeger:4317", alias="OTEL_EXPORTER_OTLP_ENDPOINT"
    )
    otel_exporter_otlp_headers: str | None = Field(
        default=None, alias="OTEL_EXPORTER_OTLP_HEADERS"
    )

    # ==========================================================================
    # Pydantic Settings Config
    # ==========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("valkey_url", mode="before")
    @classmethod
    def blank_url_is_unset(cls, value: Any) -> Any:
        """Treat an empty VALKEY_URL as not configured."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: Any) -> list[str]:
        """Parse comma-separated CORS origins, rejecting wildcard '*'."""
        parsed = _split_csv(value)
        if "*" in parsed:
            raise ValueError(
                "Wildcard CORS origin '*' is not allowed. "
                "Specify explicit origins like 'http://localhost:3000'."
            )
        return parsed

    @field_validator("meme_communities", "rate_limit_exempt_paths", mode="before")
    @classmethod
    def parse_csv_list(cls, value: Any) -> list[str]:
        """Parse comma-separated lists while keeping their order."""
        return _split_csv(value)

    @field_validator("reddit_timeframe")
    @classmethod
    def validate_timeframe(cls, value: str) -> str:
        if value not in {"hour", "day", "week"}:
            raise ValueError(f"Unsupported reddit timeframe '{value}'.")
        return value

    @model_validator(mode="after")
    def validate_ttls(self) -> "Settings":
        """TTL values must never be negative."""
        for name, value in self.__dict__.items():
            if "ttl" in name and isinstance(value, (int, float)) and value < 0:
                raise ValueError(f"TTL value for {name} cannot be negative: {value}")
        return self

    @model_validator(mode="after")
    def validate_production_security(self) -> "Settings":
        """Validate security-sensitive settings in production environment."""
        if self.environment.lower() == "production" and not self.admin_secret:
            raise ValueError(
                "ADMIN_SECRET must be set in production so the admin refresh "
                "endpoint cannot be left unprotected."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
