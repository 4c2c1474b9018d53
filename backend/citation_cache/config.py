"""Application configuration using pydantic-settings."""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (SQLite by default, PostgreSQL when an asyncpg URL is given)
    database_url: str = "sqlite+aiosqlite:///./citations.db"

    # Upstream citation index
    byu_citation_base_url: str = (
        "https://scriptures.byu.edu/citation_index/citation_ajax/Any/1830/2025/all/s/f"
    )
    byu_site_url: str = "https://scriptures.byu.edu"

    # Cache freshness
    citation_stale_after_hours: int = 24
    citation_evict_after_days: int = 30

    # Upstream timeouts (seconds). The refresh timeout may be None to disable it.
    live_fetch_timeout_seconds: float = 10.0
    refresh_fetch_timeout_seconds: Optional[float] = 60.0

    # Circuit breaker for the upstream
    breaker_failure_threshold: int = 3
    breaker_timeout_seconds: int = 60

    # Daily sweep (only used when the in-process scheduler is enabled)
    sweep_scheduler_enabled: bool = False
    sweep_hour_utc: int = 6
    sweep_minute_utc: int = 0

    # CORS settings
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def stale_after(self) -> timedelta:
        return timedelta(hours=self.citation_stale_after_hours)

    @property
    def evict_after(self) -> timedelta:
        return timedelta(days=self.citation_evict_after_days)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
