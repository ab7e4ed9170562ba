# ring_history/services/cloud_cache.py
"""
Cloud cache: keeps cloud camera events and video search results locally
so repeated queries don't hit the Ring API.

Cache-aside: callers check here first, fetch from the API on a miss, then
store what they fetched. The cache never calls the API itself.
Freshness is checked on every read (cached_at newer than now - max_age), so
an expired row behaves exactly like a missing one whether or not
prune_stale() has run.
"""

import json
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from ring_history.models.cloud_event import CloudEventRecord
from ring_history.models.cloud_video import CloudVideoRecord
from ring_history.schemas.cloud import CloudCameraEvent, CloudVideoResult, CvProperties
from ring_history.utils.logger import get_logger
from ring_history.utils.timeutil import utcnow, to_naive_utc

logger = get_logger(__name__)

DEFAULT_MAX_AGE = timedelta(minutes=30)


class CloudCache:
    def __init__(
        self,
        session_factory: sessionmaker,
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._session_factory = session_factory
        self.max_age = max_age
        self._clock = clock or utcnow

    def _fresh_after(self) -> datetime:
        return self._clock() - self.max_age

    # ── Cloud events ─────────────────────────────────────────────────────────

    def cache_events(self, events: Iterable[CloudCameraEvent]) -> None:
        """Upsert a batch of events in one transaction. Latest write wins per event id."""
        events = list(events)
        if not events:
            return
        now = self._clock()
        db: Session = self._session_factory()
        try:
            for event in events:
                db.merge(CloudEventRecord(
                    id=event.id,
                    ding_id_str=event.ding_id_str,
                    device_id=event.device_id,
                    device_name=event.device_name,
                    location_id=event.location_id,
                    location_name=event.location_name,
                    kind=event.kind,
                    created_at=to_naive_utc(event.created_at),
                    favorite=event.favorite,
                    recording_status=event.recording_status,
                    state=event.state,
                    cv_properties=event.cv_properties.model_dump_json(),
                    cached_at=now,
                ))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.debug(f"[CACHE] Cached {len(events)} cloud events")

    def get_cached_events(
        self,
        device_id: Optional[str] = None,
        location_id: Optional[str] = None,
        kind: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Optional[List[CloudCameraEvent]]:
        """Fresh cached events matching every given filter, newest first. None on a miss."""
        db: Session = self._session_factory()
        try:
            q = db.query(CloudEventRecord).filter(CloudEventRecord.cached_at > self._fresh_after())
            if device_id:
                q = q.filter(CloudEventRecord.device_id == device_id)
            if location_id:
                q = q.filter(CloudEventRecord.location_id == location_id)
            if kind:
                q = q.filter(CloudEventRecord.kind == kind)
            q = q.order_by(CloudEventRecord.created_at.desc())
            if limit:
                q = q.limit(limit)
            rows = q.all()
        finally:
            db.close()

        if not rows:
            return None
        return [_event_from_row(r) for r in rows]

    # ── Cloud videos ─────────────────────────────────────────────────────────

    def cache_videos(self, videos: Iterable[CloudVideoResult]) -> None:
        videos = list(videos)
        if not videos:
            return
        now = self._clock()
        db: Session = self._session_factory()
        try:
            for video in videos:
                db.merge(CloudVideoRecord(
                    ding_id=video.ding_id,
                    device_id=video.device_id,
                    created_at=to_naive_utc(video.created_at),
                    kind=video.kind,
                    state=video.state,
                    duration=video.duration,
                    favorite=video.favorite,
                    thumbnail_url=video.thumbnail_url,
                    lq_url=video.lq_url,
                    hq_url=video.hq_url,
                    untranscoded_url=video.untranscoded_url,
                    cv_properties=video.cv_properties.model_dump_json(),
                    cached_at=now,
                ))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.debug(f"[CACHE] Cached {len(videos)} video results")

    def get_cached_videos(
        self, device_id: str, date_from: datetime, date_to: datetime
    ) -> Optional[List[CloudVideoResult]]:
        """Fresh cached videos for a camera recorded within [date_from, date_to]. None on a miss."""
        db: Session = self._session_factory()
        try:
            rows = (
                db.query(CloudVideoRecord)
                .filter(
                    CloudVideoRecord.cached_at > self._fresh_after(),
                    CloudVideoRecord.device_id == device_id,
                    CloudVideoRecord.created_at >= to_naive_utc(date_from),
                    CloudVideoRecord.created_at <= to_naive_utc(date_to),
                )
                .order_by(CloudVideoRecord.created_at.desc())
                .all()
            )
        finally:
            db.close()

        if not rows:
            return None
        return [_video_from_row(r) for r in rows]

    # ── Maintenance ──────────────────────────────────────────────────────────

    def prune_stale(self) -> int:
        """Delete rows cached before now - max_age. Returns how many were removed."""
        cutoff = self._fresh_after()
        db: Session = self._session_factory()
        try:
            events = db.query(CloudEventRecord).filter(
                CloudEventRecord.cached_at < cutoff).delete(synchronize_session=False)
            videos = db.query(CloudVideoRecord).filter(
                CloudVideoRecord.cached_at < cutoff).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if events or videos:
            logger.info(f"[CACHE] Pruned {events} stale events, {videos} stale videos")
        return events + videos


def _cv_from_json(raw: str) -> CvProperties:
    try:
        return CvProperties.model_validate(json.loads(raw or "{}"))
    except (ValueError, TypeError):
        return CvProperties()


def _event_from_row(row: CloudEventRecord) -> CloudCameraEvent:
    return CloudCameraEvent(
        id=row.id,
        ding_id_str=row.ding_id_str,
        device_id=row.device_id,
        device_name=row.device_name,
        location_id=row.location_id,
        location_name=row.location_name,
        kind=row.kind,
        created_at=row.created_at,
        favorite=bool(row.favorite),
        recording_status=row.recording_status,
        state=row.state,
        cv_properties=_cv_from_json(row.cv_properties),
    )


def _video_from_row(row: CloudVideoRecord) -> CloudVideoResult:
    return CloudVideoResult(
        ding_id=row.ding_id,
        device_id=row.device_id,
        created_at=row.created_at,
        kind=row.kind,
        state=row.state,
        duration=row.duration,
        favorite=bool(row.favorite),
        thumbnail_url=row.thumbnail_url,
        lq_url=row.lq_url,
        hq_url=row.hq_url,
        untranscoded_url=row.untranscoded_url,
        cv_properties=_cv_from_json(row.cv_properties),
    )
