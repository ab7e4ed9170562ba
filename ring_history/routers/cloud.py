# ring_history/routers/cloud.py
"""Cloud history queries: camera events, video search, device history."""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ring_history.exceptions import EntityNotFoundError
from ring_history.routers.deps import (
    require_cloud_cache, require_cloud_history, require_history_store,
)
from ring_history.schemas.cloud import CloudEventPage, CloudVideoResult
from ring_history.schemas.device_history import DeviceHistoryEntry
from ring_history.services.cloud_cache import CloudCache
from ring_history.services.cloud_history import CloudHistory
from ring_history.services.device_history_store import DeviceHistoryStore
from ring_history.utils.timeutil import utcnow

router = APIRouter()


@router.get("/cloud/events", response_model=CloudEventPage, summary="Cloud camera events, newest first")
async def cloud_events(
    device_id: Optional[str] = None,
    location_id: Optional[str] = None,
    kind: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    pagination_key: Optional[str] = None,
    history: CloudHistory = Depends(require_cloud_history),
):
    try:
        return await history.get_events(
            device_id=device_id,
            location_id=location_id,
            kind=kind,
            limit=limit,
            pagination_key=pagination_key,
        )
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/cloud/videos", response_model=list[CloudVideoResult], summary="Video recordings for one camera")
async def cloud_videos(
    device_id: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    order: str = Query("desc", pattern="^(asc|desc)$"),
    history: CloudHistory = Depends(require_cloud_history),
):
    """Defaults to the last 24 hours."""
    date_to = date_to or utcnow()
    date_from = date_from or date_to - timedelta(days=1)
    if date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must be before date_to")
    try:
        return await history.search_videos(device_id, date_from, date_to, order=order)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/cloud/cache/prune", summary="Delete cached events/videos older than the max age")
def prune_cache(cache: CloudCache = Depends(require_cloud_cache)):
    return {"pruned": cache.prune_stale()}


@router.get("/device-history", response_model=list[DeviceHistoryEntry], summary="Stored alarm / beams history")
def device_history(
    location_id: Optional[str] = None,
    device_id: Optional[str] = None,
    event_type: Optional[str] = None,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    store: DeviceHistoryStore = Depends(require_history_store),
):
    return store.query(
        location_id=location_id,
        device_id=device_id,
        event_type=event_type,
        start_time=start_time,
        end_time=end_time,
        limit=limit,
    )
