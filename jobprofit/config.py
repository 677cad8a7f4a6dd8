"""Application configuration."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = "development"
    database_url: str

    # Redis (Celery broker/backend and import progress pub/sub)
    redis_url: str = "redis://localhost:6379/0"

    # Uploaded CSV pairs wait here until the worker imports them
    upload_dir: str = "/tmp/jobprofit_uploads"

    log_level: str = "INFO"

    # Re-run a file pair whose previous batch ended in "failed"
    retry_failed_batches: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
