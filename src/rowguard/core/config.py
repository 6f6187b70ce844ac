"""Configuration management for RowGuard.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once and is
immutable during a run.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables (prefix ``ROWGUARD_``)
    and .env files. All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ROWGUARD_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "RowGuard"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"
    debug: bool = False

    # Database Settings (change-set ledger)
    database_url: str = "sqlite+aiosqlite:///./rowguard_data/rowguard.db"
    db_echo: bool = False

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Catalog Settings
    catalog_path: str = "./rowguard_data/catalog.json"

    # Audit Column Maintainer Settings
    maintainer_resolution_path: Annotated[list[str], NoDecode] = Field(
        default=["pg_catalog", "public"],
        description="Fixed namespace list pinned on maintainer functions",
    )
    maintainer_owner: str = Field(
        default="postgres",
        description="Execution identity of SECURITY DEFINER maintainer functions",
    )
    audit_attribute: str = "updated_at"

    # Policy Settings
    allow_unprotected_access: bool = Field(
        default=False,
        description="Allow access to access-sensitive collections without access control",
    )

    # Index Telemetry Settings
    index_min_observation_days: int = Field(
        default=14,
        ge=1,
        description="Minimum statistics window before zero scans count as evidence",
    )

    @field_validator("maintainer_resolution_path", mode="before")
    @classmethod
    def parse_resolution_path(cls, v: str | list[str]) -> list[str]:
        """Parse the resolution path from a comma-separated string or list."""
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",")]
        return [part for part in v if part]

    @field_validator("maintainer_resolution_path")
    @classmethod
    def validate_resolution_path(cls, v: list[str]) -> list[str]:
        """A pinned path must name at least one namespace."""
        if not v:
            raise ValueError("maintainer_resolution_path must not be empty")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"

    @property
    def database_url_sync(self) -> str:
        """Get synchronous database URL for migrations."""
        url = self.database_url
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite")
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql")
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once per process; call ``get_settings.cache_clear()``
    to reload them (tests do this after patching the environment).

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
