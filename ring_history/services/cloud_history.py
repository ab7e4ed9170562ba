# ring_history/services/cloud_history.py
"""
Cloud history. Queries Ring's cloud-stored camera events, video recordings
and alarm/beams device history.

Sits between the crawler (or any direct query path) and the raw Ring API:
  - maps raw JSON payloads into CloudCameraEvent / CloudVideoResult
  - checks the CloudCache before calling the API and fills it afterwards
Cloud data can go back up to 180 days depending on the Ring Protect plan.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ring_history.exceptions import EntityNotFoundError
from ring_history.schemas.cloud import (
    CloudCameraEvent, CloudEventPage, CloudVideoResult, CvProperties,
)
from ring_history.services.cloud_cache import CloudCache
from ring_history.services.interfaces import RingApi
from ring_history.utils.logger import get_logger
from ring_history.utils.timeutil import (
    from_epoch_millis, parse_timestamp, to_epoch_millis, utcnow,
)

logger = get_logger(__name__)


class CloudHistory:
    def __init__(self, api: RingApi, cache: Optional[CloudCache] = None):
        self.api = api
        self.cache = cache

    # ── Cloud camera events ──────────────────────────────────────────────────

    async def get_events(
        self,
        *,
        device_id: Optional[str] = None,
        location_id: Optional[str] = None,
        kind: Optional[str] = None,
        state: Optional[str] = None,
        favorites: Optional[bool] = None,
        limit: Optional[int] = None,
        pagination_key: Optional[str] = None,
        use_cache: bool = True,
    ) -> CloudEventPage:
        """
        Fetch historical camera events.

        device_id   → that camera only
        location_id → every camera at that location
        neither     → every location, merged newest first
        Paginated requests skip the cache since they need a fresh cursor.
        use_cache=False always goes to the API (results are still cached).
        """
        if self.cache and use_cache and not pagination_key:
            cached = self.cache.get_cached_events(
                device_id=device_id, location_id=location_id, kind=kind, limit=limit,
            )
            if cached:
                logger.debug(f"[CLOUD] Cache hit: {len(cached)} events (device={device_id} location={location_id})")
                return CloudEventPage(events=cached, pagination_key=None, has_more=False)

        options = _event_options(kind=kind, state=state, favorites=favorites,
                                 limit=limit, pagination_key=pagination_key)

        if device_id:
            page = await self._events_for_camera(device_id, options)
        elif location_id:
            page = await self._events_for_location(location_id, options)
        else:
            merged: List[CloudCameraEvent] = []
            for loc in await self.api.get_locations():
                loc_page = await self._events_for_location(str(loc["id"]), options, location=loc)
                merged.extend(loc_page.events)
            merged.sort(key=lambda e: e.created_at, reverse=True)
            if limit:
                merged = merged[:limit]
            page = CloudEventPage(events=merged, pagination_key=None, has_more=False)

        if self.cache and page.events:
            self.cache.cache_events(page.events)
        return page

    async def _events_for_camera(self, device_id: str, options: Dict[str, Any]) -> CloudEventPage:
        camera = await self._find_camera(device_id)
        location = await self._find_location(camera.get("location_id"))
        response = await self.api.get_camera_events(device_id, **options)
        events = [
            parse_cloud_event(raw, camera_names={device_id: camera.get("name")}, location=location)
            for raw in response.get("events") or []
        ]
        return _page(events, response)

    async def _events_for_location(
        self, location_id: str, options: Dict[str, Any], location: Optional[dict] = None
    ) -> CloudEventPage:
        if location is None:
            location = await self._find_location(location_id)
            if location is None:
                raise EntityNotFoundError("location", location_id)
        cameras = await self.api.get_cameras()
        camera_names = {
            str(c["id"]): c.get("name") for c in cameras
            if str(c.get("location_id")) == location_id
        }
        response = await self.api.get_location_events(location_id, **options)
        events = [
            parse_cloud_event(raw, camera_names=camera_names, location=location)
            for raw in response.get("events") or []
        ]
        return _page(events, response)

    # ── Video search ─────────────────────────────────────────────────────────

    async def search_videos(
        self,
        device_id: str,
        date_from: datetime,
        date_to: datetime,
        order: str = "desc",
        use_cache: bool = True,
    ) -> List[CloudVideoResult]:
        """
        Video recordings for a camera within [date_from, date_to].
        A cached hit may cover only part of the window, so callers that need
        the complete set pass use_cache=False (results are still cached).
        """
        if self.cache and use_cache:
            cached = self.cache.get_cached_videos(device_id, date_from, date_to)
            if cached:
                return cached

        await self._find_camera(device_id)
        response = await self.api.video_search(
            device_id, to_epoch_millis(date_from), to_epoch_millis(date_to), order
        )
        results = [parse_video_result(raw, device_id) for raw in response.get("video_search") or []]

        if self.cache and results:
            self.cache.cache_videos(results)
        return results

    # ── Recording URL ────────────────────────────────────────────────────────

    async def get_recording_url(self, device_id: str, ding_id_str: str, transcoded: bool = False) -> str:
        """Temporary playback URL for one recording."""
        await self._find_camera(device_id)
        return await self.api.get_recording_url(device_id, ding_id_str, transcoded=transcoded)

    # ── Alarm / beams device history ─────────────────────────────────────────

    async def get_device_history(
        self,
        location_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        category: Optional[str] = None,
    ) -> List[Any]:
        """Raw device history items for a location, passed through untouched."""
        if await self._find_location(location_id) is None:
            raise EntityNotFoundError("location", location_id)
        items = await self.api.get_location_history(
            location_id, limit=limit, offset=offset, category=category
        )
        return list(items or [])

    # ── Lookups ──────────────────────────────────────────────────────────────

    async def _find_camera(self, device_id: str) -> dict:
        for camera in await self.api.get_cameras():
            if str(camera["id"]) == str(device_id):
                return camera
        raise EntityNotFoundError("camera", device_id)

    async def _find_location(self, location_id: Optional[str]) -> Optional[dict]:
        if location_id is None:
            return None
        for location in await self.api.get_locations():
            if str(location["id"]) == str(location_id):
                return location
        return None


# ── Payload mapping ──────────────────────────────────────────────────────────

def _event_options(**kwargs) -> Dict[str, Any]:
    """Only pass options the caller actually set; the cursor maps to Ring's older_than_id."""
    key = kwargs.pop("pagination_key")
    options = {k: v for k, v in kwargs.items() if v is not None}
    if key is not None:
        options["older_than_id"] = key
    return options


def _page(events: List[CloudCameraEvent], response: dict) -> CloudEventPage:
    meta = response.get("meta") or {}
    key = meta.get("pagination_key") or None
    return CloudEventPage(
        events=events,
        pagination_key=key,
        has_more=key is not None and len(events) > 0,
    )


def _cv(raw: Any) -> CvProperties:
    raw = raw if isinstance(raw, dict) else {}
    return CvProperties(
        person_detected=raw.get("person_detected"),
        detection_type=raw.get("detection_type"),
        stream_broken=raw.get("stream_broken"),
    )


def parse_cloud_event(raw: dict, camera_names: Dict[str, Any], location: Optional[dict]) -> CloudCameraEvent:
    """Map one raw Ring ding/event into a CloudCameraEvent."""
    doorbot_id = str(raw.get("doorbot_id"))
    ding_id_str = str(raw.get("ding_id_str") or raw.get("ding_id"))
    return CloudCameraEvent(
        id=ding_id_str,
        ding_id_str=ding_id_str,
        device_id=doorbot_id,
        device_name=camera_names.get(doorbot_id) or f"Camera {doorbot_id}",
        location_id=str(location["id"]) if location else "unknown",
        location_name=location.get("name", "unknown") if location else "unknown",
        kind=raw.get("kind") or "unknown",
        created_at=parse_timestamp(raw.get("created_at")) or utcnow(),
        favorite=bool(raw.get("favorite")),
        recording_status=raw.get("recording_status") or "",
        state=raw.get("state") or "",
        cv_properties=_cv(raw.get("cv_properties")),
    )


def parse_video_result(raw: dict, device_id: str) -> CloudVideoResult:
    """Map one raw video_search entry. Ring sends created_at as epoch milliseconds."""
    created = raw.get("created_at")
    if isinstance(created, (int, float)):
        created_at = from_epoch_millis(created)
    else:
        created_at = parse_timestamp(created)
    return CloudVideoResult(
        ding_id=str(raw.get("ding_id")),
        device_id=str(device_id),
        created_at=created_at or utcnow(),
        kind=raw.get("kind") or "unknown",
        state=raw.get("state") or "",
        duration=raw.get("duration") or 0,
        favorite=bool(raw.get("favorite")),
        thumbnail_url=raw.get("thumbnail_url") or None,
        lq_url=raw.get("lq_url") or "",
        hq_url=raw.get("hq_url"),
        untranscoded_url=raw.get("untranscoded_url") or "",
        cv_properties=_cv(raw.get("cv_properties")),
    )
