"""Application configuration using Pydantic settings."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")

    redis_url: str = "redis://redis:6379"
    service_name: str = "docshelf"
    service_port: int = 8000

    # Per-version content limit in bytes
    max_file_size: int = 1024 * 1024

    share_secret: str = "default-secret"
    default_share_minutes: int = 60
    max_share_minutes: int = 60 * 24 * 7

    default_page_size: int = 20
    max_page_size: int = 50

    # Retry configuration for transient backing store faults
    max_retries: int = 3
    retry_delay_seconds: float = 0.2
    retry_backoff_multiplier: float = 2.0

    # Connection pooling
    redis_pool_size: int = 10

    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]


settings = Settings()
