# ring_history/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./ring-data.db"

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to enable auth on API endpoints

    # ── Cloud cache ───────────────────────────────────────────────────────
    CLOUD_CACHE_MAX_AGE_MINUTES: int = 30

    # ── Historic crawler ──────────────────────────────────────────────────
    CRAWL_ENABLED: bool = False                  # Start backfill on startup
    CRAWL_DELAY_MS: int = 2000                   # Pause between page fetches
    CRAWL_PAGE_SIZE: int = 50
    CRAWL_VIDEO_WINDOW_DAYS: int = 7
    CRAWL_INCREMENTAL_INTERVAL_MINUTES: int = 15
    CRAWL_MAX_HISTORY_DAYS: int = 180            # Ring cloud retention limit

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
