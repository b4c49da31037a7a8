"""Application configuration using Pydantic Settings.

Environment variables are loaded from .env files and system environment.
The workflow store API key should only ever be provided via environment variables.
"""

from functools import lru_cache
from typing import Any

from pydantic import PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Graph Patch API"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # CORS
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> list[str]:
        """Parse ALLOWED_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, list):
            return v
        return ["http://localhost:3000"]

    # Automation engine database (webhook registrations, credentials)
    DATABASE_URL: PostgresDsn | None = None
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10

    # Workflow store (REST control plane)
    WORKFLOW_STORE_URL: str = "http://127.0.0.1:30119"
    WORKFLOW_STORE_API_PREFIX: str = "/rest"
    WORKFLOW_STORE_API_KEY: str | None = None
    WORKFLOW_STORE_TIMEOUT: float = 30.0

    # Webhooks
    WEBHOOK_BASE_URL: str | None = None  # Defaults to WORKFLOW_STORE_URL

    # Patch engine
    PATCH_MAX_OPERATIONS: int = 250
    PATCH_VERSION_CHECK: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None  # Defaults to logs/app.log
    LOG_JSON_FORMAT: bool = True
    LOG_SENSITIVE_FILTER: bool = True

    @field_validator("WORKFLOW_STORE_URL", "WEBHOOK_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Store base URLs without a trailing slash."""
        if v is None:
            return v
        return v.strip().rstrip("/")

    @property
    def webhook_base_url(self) -> str:
        """Base URL used when rendering external webhook URLs."""
        return self.WEBHOOK_BASE_URL or self.WORKFLOW_STORE_URL


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are cached after first load for performance.
    """
    return Settings()


# Global settings instance
settings = get_settings()
