"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Meeting Cost Engine"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Ledger (Turso/libSQL)
    turso_database_url: str | None = Field(default=None)
    turso_auth_token: str | None = Field(default=None)
    ledger_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Deadline for a single ledger transaction",
    )
    ledger_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for operations failing with a transient ledger error",
    )
    ledger_retry_wait_seconds: float = Field(
        default=0.2,
        ge=0,
        description="Exponential backoff multiplier between ledger retries",
    )

    # Cache and event bus (Redis). Unset means in-process implementations.
    redis_url: str | None = Field(default=None)
    meeting_cache_ttl_seconds: int = Field(default=15 * 60, ge=1)
    increments_cache_ttl_seconds: int = Field(default=15 * 60, ge=1)
    permission_cache_ttl_seconds: int = Field(default=60, ge=1)

    # Listing
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Static access/wage policy consumed by the bundled oracle
    policy_path: str | None = Field(default=None)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
