"""Application settings and configuration.

This module defines all configuration options for the Upvista core service.
Settings are loaded from environment variables (or a ``.env`` file) with
sensible defaults. Unknown options are rejected at startup.
"""

from datetime import time

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_DATA_PROVIDERS = ("supabase",)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Upvista Core", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Relational store (PostgREST-compatible)
    data_provider: str = Field(default="supabase", alias="DATA_PROVIDER")
    supabase_url: str = Field(alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(alias="SUPABASE_SERVICE_ROLE_KEY")
    store_timeout_seconds: float = Field(default=30.0, alias="STORE_TIMEOUT_SECONDS")
    store_pool_size: int = Field(default=10, ge=1, alias="STORE_POOL_SIZE")

    # Direct database URL, used only by schema migrations
    database_url: str | None = Field(default=None, alias="DATABASE_URL")

    # Bearer token verification
    jwt_secret: str = Field(alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Post constraints
    post_max_content_length: int = Field(default=5000, alias="POST_MAX_CONTENT_LENGTH")
    poll_min_options: int = Field(default=2, alias="POLL_MIN_OPTIONS")
    poll_max_options: int = Field(default=10, alias="POLL_MAX_OPTIONS")

    # Feed paging
    feed_default_limit: int = Field(default=20, alias="FEED_DEFAULT_LIMIT")
    feed_max_limit: int = Field(default=100, alias="FEED_MAX_LIMIT")

    # Object storage for media uploads
    storage_bucket: str = Field(default="posts", alias="STORAGE_BUCKET")
    storage_max_file_size: int = Field(
        default=50 * 1024 * 1024,
        alias="STORAGE_MAX_FILE_SIZE",
    )
    storage_allowed_types: list[str] = Field(
        default=[
            "image/jpeg",
            "image/png",
            "image/gif",
            "image/webp",
            "video/mp4",
            "video/webm",
            "video/quicktime",
            "audio/mpeg",
            "audio/ogg",
        ],
        alias="STORAGE_ALLOWED_TYPES",
    )

    # Hashtag trending
    trending_decay_hours: float = Field(default=24.0, gt=0, alias="TRENDING_DECAY_HOURS")
    trending_window_days: int = Field(default=7, ge=1, alias="TRENDING_WINDOW_DAYS")

    # Background scheduler (local wall-clock times)
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    cleanup_at: time = Field(default=time(2, 0), alias="CLEANUP_AT")
    trending_at: time = Field(default=time(3, 0), alias="TRENDING_AT")
    digest_at: time = Field(default=time(9, 0), alias="DIGEST_AT")
    digest_weekly_weekday: int = Field(default=0, ge=0, le=6, alias="DIGEST_WEEKLY_WEEKDAY")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="forbid",
        populate_by_name=True,
    )

    @field_validator("data_provider")
    @classmethod
    def _check_data_provider(cls, value: str) -> str:
        provider = value.strip().lower()
        if provider not in SUPPORTED_DATA_PROVIDERS:
            raise ValueError(f"unsupported data provider: {value}")
        return provider

    @field_validator("supabase_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def storage_base_url(self) -> str:
        """Return the base URL of the object store."""
        return f"{self.supabase_url}/storage/v1"


settings = Settings()  # type: ignore[call-arg]
