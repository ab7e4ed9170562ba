# ring_history/routers/deps.py
"""Shared FastAPI dependencies: look up the configured crawler pieces or 503."""

from fastapi import HTTPException, status

from ring_history.services import crawl_service
from ring_history.services.cloud_cache import CloudCache
from ring_history.services.cloud_history import CloudHistory
from ring_history.services.device_history_store import DeviceHistoryStore
from ring_history.services.historic_crawler import HistoricCrawler


def _not_configured(what: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{what} not configured; call configure_crawler() with a Ring API client first",
    )


def require_crawler() -> HistoricCrawler:
    crawler = crawl_service.get_crawler()
    if crawler is None:
        raise _not_configured("Historic crawler")
    return crawler


def require_cloud_history() -> CloudHistory:
    history = crawl_service.get_cloud_history()
    if history is None:
        raise _not_configured("Cloud history")
    return history


def require_cloud_cache() -> CloudCache:
    cache = crawl_service.get_cloud_cache()
    if cache is None:
        raise _not_configured("Cloud cache")
    return cache


def require_history_store() -> DeviceHistoryStore:
    store = crawl_service.get_device_history_store()
    if store is None:
        raise _not_configured("Device history store")
    return store
