# ring_history/services/crawl_service.py
"""
Owns the process-wide crawler and the stores it shares with the API routes.
The host process (CLI / MCP server) calls configure_crawler() with its Ring
API client before the FastAPI app starts; routes look the pieces up here.
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ring_history.config import Settings, settings
from ring_history.database import SessionLocal
from ring_history.schemas.crawl import CrawlConfig
from ring_history.services.cloud_cache import CloudCache
from ring_history.services.cloud_history import CloudHistory
from ring_history.services.crawl_store import CrawlStore
from ring_history.services.device_history_store import DeviceHistoryStore
from ring_history.services.historic_crawler import HistoricCrawler
from ring_history.services.interfaces import RingApi
from ring_history.utils.logger import get_logger

logger = get_logger(__name__)

_crawler: Optional[HistoricCrawler] = None
_cloud_history: Optional[CloudHistory] = None
_cloud_cache: Optional[CloudCache] = None
_history_store: Optional[DeviceHistoryStore] = None


def build_crawl_config(cfg: Settings = settings) -> CrawlConfig:
    return CrawlConfig(
        enabled=cfg.CRAWL_ENABLED,
        delay_ms=cfg.CRAWL_DELAY_MS,
        page_size=cfg.CRAWL_PAGE_SIZE,
        video_window_days=cfg.CRAWL_VIDEO_WINDOW_DAYS,
        incremental_interval_minutes=cfg.CRAWL_INCREMENTAL_INTERVAL_MINUTES,
        max_history_days=cfg.CRAWL_MAX_HISTORY_DAYS,
    )


def configure_crawler(
    api: RingApi,
    session_factory: sessionmaker = SessionLocal,
    config: Optional[CrawlConfig] = None,
) -> HistoricCrawler:
    """Wire cache, stores, cloud history and crawler around a Ring API client."""
    global _crawler, _cloud_history, _cloud_cache, _history_store

    if _crawler is not None:
        _crawler.stop()

    _cloud_cache = CloudCache(
        session_factory, max_age=timedelta(minutes=settings.CLOUD_CACHE_MAX_AGE_MINUTES)
    )
    _history_store = DeviceHistoryStore(session_factory)
    _cloud_history = CloudHistory(api, cache=_cloud_cache)
    _crawler = HistoricCrawler(
        directory=api,
        remote=_cloud_history,
        store=CrawlStore(session_factory),
        sink=_history_store,
        config=config or build_crawl_config(),
    )
    logger.info(f"Crawler configured (page_size={_crawler.config.page_size}, "
                f"delay={_crawler.config.delay_ms}ms, enabled={_crawler.config.enabled})")
    return _crawler


def reset_registry() -> None:
    """Stop and forget the configured crawler."""
    global _crawler, _cloud_history, _cloud_cache, _history_store
    if _crawler is not None:
        _crawler.stop()
    _crawler = _cloud_history = _cloud_cache = _history_store = None


def get_crawler() -> Optional[HistoricCrawler]:
    return _crawler


def get_cloud_history() -> Optional[CloudHistory]:
    return _cloud_history


def get_cloud_cache() -> Optional[CloudCache]:
    return _cloud_cache


def get_device_history_store() -> Optional[DeviceHistoryStore]:
    return _history_store
