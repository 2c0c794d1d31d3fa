"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal
from urllib.parse import quote

from pydantic import Field, PostgresDsn, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Raised when the process cannot start because of missing or invalid settings."""


class Settings(BaseSettings):
    """
    Central configuration for the feed ingestion pipeline.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., DATABASE_URL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # Redis (job queue and scraper cache). REDIS_URL wins over the split fields.
    redis_url: RedisDsn | None = None
    redis_hostname: str = "127.0.0.1"
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_username: str | None = None
    redis_password: str | None = None
    queue_name: str = "sources"

    # PostgreSQL (source store)
    database_url: PostgresDsn | None = None
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10

    # Blob storage for cached source icons (Supabase Storage REST API)
    storage_url: str | None = None
    storage_service_key: str | None = None
    storage_bucket: str = "sources"

    # Hex encoded AES-128-CBC key and IV used for stored account tokens
    encryption_key: str | None = None
    encryption_iv: str | None = None

    # Provider credentials
    youtube_api_key: str | None = None
    nitter_instance: str | None = None
    nitter_basic_auth: str | None = None

    # Scheduler
    scheduler_interval_seconds: int = Field(default=900, ge=1)
    profile_page_size: int = Field(default=1000, ge=1)
    profile_active_window_seconds: int = 7 * 24 * 60 * 60
    source_staleness_seconds: int = 60 * 60
    rate_limited_staleness_seconds: int = 24 * 60 * 60

    # Worker
    worker_concurrency: int = Field(default=1, ge=1, le=64)
    worker_pop_timeout_seconds: int = Field(default=1000 * 60, ge=1)

    # Feed fetching
    feed_timeout_seconds: float = Field(default=5.0, gt=0)
    max_http_retries: int = Field(default=0, ge=0, le=10)
    max_backoff_seconds: float = Field(default=10.0, ge=1.0, le=300.0)
    spam_filter_enabled: bool = True
    user_agent: str = "feed-ingest/0.1.0"

    # Observability
    metrics_port: int = 8000

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def redis_connection_url(self) -> str:
        """Redis URL, either given directly or assembled from host/port/credentials."""
        if self.redis_url is not None:
            return str(self.redis_url)

        auth = ""
        if self.redis_username or self.redis_password:
            auth = quote(self.redis_username or "", safe="")
            if self.redis_password:
                auth += ":" + quote(self.redis_password, safe="")
            auth += "@"
        return f"redis://{auth}{self.redis_hostname}:{self.redis_port}/0"

    @property
    def storage_configured(self) -> bool:
        """Check if icon uploads can be performed."""
        return self.storage_url is not None and self.storage_service_key is not None

    @property
    def encryption_configured(self) -> bool:
        """Check if account tokens can be decrypted."""
        return self.encryption_key is not None and self.encryption_iv is not None

    @property
    def youtube_configured(self) -> bool:
        return self.youtube_api_key is not None

    @property
    def nitter_configured(self) -> bool:
        return self.nitter_instance is not None

    def validate_runtime(self) -> None:
        """
        Check the settings a long-running process needs before it connects.

        Raises:
            ConfigError: If a required connection parameter is missing or a
                credential has the wrong shape.
        """
        if self.database_url is None:
            raise ConfigError("DATABASE_URL is required")

        for name in ("encryption_key", "encryption_iv"):
            value = getattr(self, name)
            if value is None:
                continue
            try:
                raw = bytes.fromhex(value)
            except ValueError as e:
                raise ConfigError(f"{name.upper()} must be hex encoded") from e
            if len(raw) != 16:
                raise ConfigError(f"{name.upper()} must be 16 bytes (32 hex characters)")

        if self.db_pool_min_size > self.db_pool_max_size:
            raise ConfigError("DB_POOL_MIN_SIZE must not exceed DB_POOL_MAX_SIZE")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
