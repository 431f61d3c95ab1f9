"""
Configuration settings for catalog-sync.

Every value comes from the environment (or `.env`) through Pydantic Settings.
Three groups matter at runtime:

- `DB_*`: where the remote store and the change-feed listener connect, and
  how the store's connection pool is sized.
- `FEED_*`: notification coalescing, keepalive probing and the reconnect
  backoff ceiling of the change feed.
- `LOG_*` / `WATCH_*`: CLI behaviour.
"""
from __future__ import annotations

from functools import lru_cache
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("catalog", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(0, ge=0, alias="DB_STATEMENT_TIMEOUT_MS")
    db_pool_min_size: int = Field(1, ge=0, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(5, ge=1, alias="DB_POOL_MAX_SIZE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Change feed
    feed_debounce_ms: int = Field(50, ge=0, alias="FEED_DEBOUNCE_MS")
    feed_reconnect_max_wait_seconds: float = Field(
        30.0, gt=0, alias="FEED_RECONNECT_MAX_WAIT_SECONDS"
    )
    feed_keepalive_seconds: float = Field(30.0, gt=0, alias="FEED_KEEPALIVE_SECONDS")
    feed_ready_timeout_seconds: float = Field(5.0, ge=0, alias="FEED_READY_TIMEOUT_SECONDS")

    # CLI
    watch_poll_interval_seconds: float = Field(0.5, gt=0, alias="WATCH_POLL_INTERVAL_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def _pool_bounds(self) -> "Settings":
        if self.db_pool_min_size > self.db_pool_max_size:
            raise ValueError("DB_POOL_MIN_SIZE cannot exceed DB_POOL_MAX_SIZE")
        return self

    @property
    def dsn(self) -> str:
        """Connection string shared by the store pool and the listener."""
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["LOG_LEVELS", "Settings", "get_settings"]
