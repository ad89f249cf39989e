"""
Configuration management for the build registry.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Every field can be overridden with a ``REGISTRY_``-prefixed environment
    variable (``REGISTRY_DATABASE_URI``, ``REGISTRY_LOG_LEVEL``, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Build Registry")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    # Logging
    log_level: Literal["debug", "info", "warning", "error", "critical"] = Field(default="info")
    log_format: Literal["json", "console"] = Field(default="json")

    # Stores
    database_uri: str = Field(
        default="file://./.registry/db.json",
        description="Document store URI: memory://, file:///path/db.json, or a SQLAlchemy URL.",
    )
    storage_uri: str = Field(
        default="file://./.registry/storage",
        description="Blob store URI: file:///path/to/root.",
    )

    # Projects
    default_github_branch: str = Field(default="main", min_length=1)
    default_purge_after_days: int = Field(default=30, ge=1)

    # Purge
    purge_concurrency: int = Field(
        default=8,
        ge=1,
        description="Maximum builds deleted concurrently within one project sweep.",
    )
    purge_interval_seconds: int = Field(default=86400, ge=1)

    # Webhooks
    webhook_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Per-delivery timeout when notifying project webhooks.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def lowercase_level(cls, value):
        return value.lower() if isinstance(value, str) else value


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
