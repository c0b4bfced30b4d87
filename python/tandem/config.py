"""Application settings loaded from environment variables.

Environment Configuration:
    TANDEM_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: PostgreSQL connection string (required)
    TANDEM_INTERNAL_SECRET: Internal API secret (required in staging/prod)

Redis / Celery Configuration:
    REDIS_URL: Redis connection string (shared rate-limit counters, worker broker)
    CELERY_BROKER_URL: Celery broker URL (defaults to REDIS_URL)
    CELERY_RESULT_BACKEND: Celery result backend URL (defaults to REDIS_URL)

Auth Configuration (required in all environments):
    SUPABASE_JWKS_URL: Full URL to Supabase JWKS endpoint
    SUPABASE_ISSUER: Expected JWT issuer (trailing slash stripped)
    SUPABASE_AUDIENCES: Comma-separated list of allowed audiences

Content Configuration:
    SUPABASE_URL / SUPABASE_SERVICE_KEY: Supabase Storage access
    STORAGE_BUCKET: Bucket holding streak photos and memories
    STREAK_TIMEZONE: IANA zone defining the shared streak calendar day

Throttling:
    RATE_LIMIT_MAX: Requests allowed per client address per window
    RATE_LIMIT_WINDOW_S: Window length in seconds
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - SUPABASE_JWKS_URL, SUPABASE_ISSUER, SUPABASE_AUDIENCES are required in all environments
    - TANDEM_INTERNAL_SECRET is required in staging and prod only
    - STREAK_TIMEZONE must name a known IANA zone
    """

    tandem_env: Environment = Field(default=Environment.LOCAL, alias="TANDEM_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    tandem_internal_secret: str | None = Field(default=None, alias="TANDEM_INTERNAL_SECRET")

    # Redis / Celery settings
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    celery_broker_url: str | None = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: str | None = Field(default=None, alias="CELERY_RESULT_BACKEND")

    # Supabase auth settings (required in all environments)
    supabase_jwks_url: str | None = Field(default=None, alias="SUPABASE_JWKS_URL")
    supabase_issuer: str | None = Field(default=None, alias="SUPABASE_ISSUER")
    supabase_audiences: str | None = Field(default=None, alias="SUPABASE_AUDIENCES")

    # Supabase Storage settings
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_KEY")
    storage_bucket: str = Field(default="content", alias="STORAGE_BUCKET")
    signed_url_expiry_s: int = Field(default=300, alias="SIGNED_URL_EXPIRY_S")  # 5 minutes

    # Soft per-address throttle (100 requests / 15 minutes)
    rate_limit_max: int = Field(default=100, alias="RATE_LIMIT_MAX")
    rate_limit_window_s: int = Field(default=900, alias="RATE_LIMIT_WINDOW_S")

    # Shared reference clock for streak calendar days
    streak_timezone: str = Field(default="UTC", alias="STREAK_TIMEZONE")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("streak_timezone")
    @classmethod
    def validate_streak_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"STREAK_TIMEZONE is not a known timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set for all environments."""
        missing_auth = []
        if not self.supabase_jwks_url:
            missing_auth.append("SUPABASE_JWKS_URL")
        if not self.supabase_issuer:
            missing_auth.append("SUPABASE_ISSUER")
        if not self.supabase_audiences:
            missing_auth.append("SUPABASE_AUDIENCES")

        if missing_auth:
            raise ValueError(
                f"Missing required Supabase auth settings: {', '.join(missing_auth)}. "
                "Configure Supabase local, or set these environment variables."
            )

        if self.tandem_env in (Environment.STAGING, Environment.PROD):
            if not self.tandem_internal_secret:
                raise ValueError(
                    f"TANDEM_INTERNAL_SECRET is required for TANDEM_ENV={self.tandem_env.value}"
                )

        if self.rate_limit_max < 1 or self.rate_limit_window_s < 1:
            raise ValueError("RATE_LIMIT_MAX and RATE_LIMIT_WINDOW_S must be positive")

        return self

    @property
    def requires_internal_header(self) -> bool:
        """Whether requests must include the internal secret header."""
        return self.tandem_env in (Environment.STAGING, Environment.PROD)

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.supabase_audiences:
            return [a.strip() for a in self.supabase_audiences.split(",") if a.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.supabase_issuer:
            return self.supabase_issuer.rstrip("/")
        return None

    @property
    def streak_tz(self) -> ZoneInfo:
        return ZoneInfo(self.streak_timezone)

    @property
    def effective_celery_broker_url(self) -> str | None:
        """Return Celery broker URL, falling back to REDIS_URL if not set."""
        return self.celery_broker_url or self.redis_url

    @property
    def effective_celery_result_backend(self) -> str | None:
        """Return Celery result backend URL, falling back to REDIS_URL if not set."""
        return self.celery_result_backend or self.redis_url


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
