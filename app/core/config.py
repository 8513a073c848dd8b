"""Application configuration."""

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Storage
    storage_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_command_timeout: int = 60

    # Application
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    log_json: bool = True
    expose_error_details: bool = False

    # Frontend (for CORS)
    frontend_url: str = "http://localhost:5173"

    # Appraisal cycle
    appraisal_year: int | None = None  # None = current calendar year
    committee_rate_limit: str = "30/minute"

    @property
    def frontend_urls(self) -> list[str]:
        """Parse frontend URLs from comma-separated env var."""
        return [url.strip() for url in self.frontend_url.split(",")]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {v!r}")
        return level

    @model_validator(mode="after")
    def validate_database_url(self) -> "Settings":
        """Postgres storage needs a connection string."""
        if self.storage_backend == "postgres" and not (self.database_url or "").strip():
            raise ValueError(
                "DATABASE_URL is required when STORAGE_BACKEND=postgres. "
                "Set STORAGE_BACKEND=memory for a local in-process store."
            )
        return self


settings = Settings()
