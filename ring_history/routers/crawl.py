# ring_history/routers/crawl.py
"""Historic crawl control: status, start/stop and ledger resets."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ring_history.routers.deps import require_crawler
from ring_history.schemas.crawl import CrawlPhase, CrawlStatusReport
from ring_history.services.historic_crawler import HistoricCrawler
from ring_history.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/crawl/status", response_model=CrawlStatusReport, summary="Per-camera / per-location crawl progress")
async def crawl_status(crawler: HistoricCrawler = Depends(require_crawler)):
    return await crawler.get_status()


@router.post("/crawl/start", summary="Start (or resume) the historic backfill")
async def crawl_start(crawler: HistoricCrawler = Depends(require_crawler)):
    if crawler.is_running:
        return {"status": "already_running", "running": True}
    await crawler.start()
    return {"status": "started", "running": crawler.is_running}


@router.post("/crawl/stop", summary="Pause the crawl at the next page boundary")
async def crawl_stop(crawler: HistoricCrawler = Depends(require_crawler)):
    crawler.stop()
    return {"status": "stopping", "running": crawler.is_running}


@router.post("/crawl/reset", summary="Reset one ledger row, or the whole ledger")
async def crawl_reset(
    entity_id: Optional[str] = None,
    phase: Optional[CrawlPhase] = None,
    crawler: HistoricCrawler = Depends(require_crawler),
):
    """
    With entity_id + phase, puts that row back to idle so the next start
    re-crawls it from scratch. With neither, clears the whole ledger.
    Refused while the crawler is running.
    """
    if crawler.is_running:
        raise HTTPException(status_code=409, detail="Stop the crawler before resetting")
    if (entity_id is None) != (phase is None):
        raise HTTPException(status_code=400, detail="entity_id and phase must be given together")

    if entity_id is None:
        crawler.store.reset_all()
        return {"status": "reset", "scope": "all"}

    crawler.store.reset_state(entity_id, phase)
    return {"status": "reset", "scope": f"{entity_id}/{phase.value}"}
