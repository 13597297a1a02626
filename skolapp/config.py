# skolapp/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Fail fast with clear error messages if required config is missing.
"""

from functools import lru_cache
from typing import ClassVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError


class ConfigurationError(RuntimeError):
    """Raised when the environment cannot support the requested operation."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(
        ...,
        description="PostgreSQL connection URL (must authenticate as a privileged role for jobs)",
    )

    # Authentication
    ADMIN_API_KEY: str | None = Field(
        default=None,
        description="API key for admin endpoints",
    )

    # Application
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    APP_URL: str = Field(
        default="http://localhost:3000",
        description="Public base URL used when building consent links",
    )
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: bool = Field(
        default=True,
        description="Emit single-line JSON logs (False for human-readable output)",
    )

    # Maintenance jobs
    DRY_RUN: bool = Field(
        default=False,
        description="Report what the maintenance jobs would change without mutating anything",
    )
    MAX_AGE_HOURS: int = Field(
        default=24,
        ge=1,
        description="Age threshold for E2E test accounts",
    )

    # Rate limiting
    REDIS_URL: str | None = Field(
        default=None,
        description="Shared counter store for rate limiting; in-process fallback when unset",
    )

    # Database roles that only see row-level-security filtered data
    PUBLIC_DATABASE_ROLES: ClassVar[set[str]] = {"anon", "authenticated", "public"}

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Hosted Postgres provides postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+psycopg2://", 1)
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()


def require_service_credentials(settings: Settings) -> None:
    """
    Refuse to run maintenance jobs with a public database credential.

    The sweep jobs delete rows across every organization, so they must
    connect as a service role rather than one of the RLS-restricted roles.
    SQLite URLs (local development and tests) carry no credential and are
    accepted as-is.
    """
    try:
        url = make_url(settings.DATABASE_URL)
    except ArgumentError as e:
        raise ConfigurationError(f"DATABASE_URL is not a valid database URL: {e}") from e

    if url.get_backend_name() == "sqlite":
        return

    if not url.username:
        raise ConfigurationError("DATABASE_URL must include the service role user")

    if url.username.lower() in Settings.PUBLIC_DATABASE_ROLES:
        raise ConfigurationError(
            f"DATABASE_URL authenticates as public role '{url.username}'; a service role is required"
        )
