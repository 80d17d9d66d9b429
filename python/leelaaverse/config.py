"""Application settings loaded from environment variables.

Environment Configuration:
    LEELAAVERSE_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (required)
    JWT_SECRET: Secret used to verify bearer tokens (required)

Generation Provider:
    FAL_KEY: FAL AI API key (required in staging/prod)
    FAL_QUEUE_URL: Base URL of the FAL queue API

Media Storage:
    SUPABASE_URL / SUPABASE_SERVICE_KEY: Permanent object storage (required in staging/prod)
    STORAGE_BUCKET: Bucket that relocated media is written to

Redis / Celery Configuration:
    REDIS_URL: Redis connection string (required for worker)
    CELERY_BROKER_URL: Celery broker URL (defaults to REDIS_URL)
    CELERY_RESULT_BACKEND: Celery result backend URL (defaults to REDIS_URL)
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL and JWT_SECRET are always required
    - FAL_KEY, SUPABASE_URL and SUPABASE_SERVICE_KEY are required in staging and prod
    """

    leelaaverse_env: Environment = Field(default=Environment.LOCAL, alias="LEELAAVERSE_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    # Bearer token verification
    jwt_secret: Annotated[str, Field(alias="JWT_SECRET")]
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # FAL AI queue
    fal_key: str | None = Field(default=None, alias="FAL_KEY")
    fal_queue_url: str = Field(default="https://queue.fal.run", alias="FAL_QUEUE_URL")
    fal_timeout_s: int = Field(default=30, alias="FAL_TIMEOUT_S")

    # Supabase Storage settings
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_KEY")
    storage_bucket: str = Field(default="leelaaverse", alias="STORAGE_BUCKET")

    # Media relocation
    thumbnail_size: int = Field(default=400, alias="THUMBNAIL_SIZE")
    max_image_bytes: int = Field(default=20 * 1024 * 1024, alias="MAX_IMAGE_BYTES")  # 20 MB
    media_fetch_timeout_s: int = Field(default=30, alias="MEDIA_FETCH_TIMEOUT_S")

    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")

    # Redis / Celery settings
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    celery_broker_url: str | None = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: str | None = Field(default=None, alias="CELERY_RESULT_BACKEND")

    # Records left in pending/processing longer than this are failed by the sweeper
    generation_stale_after_minutes: int = Field(
        default=30, alias="GENERATION_STALE_AFTER_MINUTES"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure provider and storage credentials exist in deployed environments."""
        if self.leelaaverse_env in (Environment.STAGING, Environment.PROD):
            missing = []
            if not self.fal_key:
                missing.append("FAL_KEY")
            if not self.supabase_url:
                missing.append("SUPABASE_URL")
            if not self.supabase_service_key:
                missing.append("SUPABASE_SERVICE_KEY")
            if missing:
                raise ValueError(
                    f"Missing required settings for LEELAAVERSE_ENV="
                    f"{self.leelaaverse_env.value}: {', '.join(missing)}"
                )

        if self.generation_stale_after_minutes < 1:
            raise ValueError("GENERATION_STALE_AFTER_MINUTES must be >= 1")

        return self

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins:
            return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return []

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

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
