# ring_history/services/device_history_store.py
"""
Device history store — persists alarm / beams history items fetched from
Ring's cloud API and acts as the crawler's device-history sink.

The API gives these items no stable id, so duplicates are detected by exact
body match per location. An event that genuinely repeats byte-for-byte is
therefore stored once.
"""

import json
from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from ring_history.models.device_history import DeviceHistoryRecord
from ring_history.schemas.device_history import DeviceHistoryEntry
from ring_history.utils.history_fields import extract_history_fields
from ring_history.utils.logger import get_logger
from ring_history.utils.timeutil import utcnow, to_naive_utc

logger = get_logger(__name__)


def serialize_body(raw: Any) -> str:
    """Canonical JSON text used both for storage and duplicate detection."""
    return json.dumps(raw, sort_keys=True, separators=(",", ":"), default=str)


class DeviceHistoryStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def insert(self, location_id: str, raw_items: Iterable[Any]) -> int:
        """Store raw history items for a location. Returns how many were new."""
        inserted = 0
        now = utcnow()
        db: Session = self._session_factory()
        try:
            seen = set()
            for raw in raw_items:
                body = serialize_body(raw)
                if body in seen:
                    continue
                seen.add(body)

                exists = db.query(DeviceHistoryRecord.id).filter(
                    DeviceHistoryRecord.location_id == location_id,
                    DeviceHistoryRecord.body == body,
                ).first()
                if exists:
                    continue

                fields = extract_history_fields(raw)
                db.add(DeviceHistoryRecord(
                    location_id=location_id,
                    device_id=fields.device_id,
                    device_name=fields.device_name,
                    event_type=fields.event_type,
                    created_at=fields.created_at,
                    body=body,
                    cached_at=now,
                ))
                inserted += 1
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if inserted:
            logger.debug(f"[HISTORY] {location_id}: stored {inserted} new items")
        return inserted

    def query(
        self,
        location_id: Optional[str] = None,
        device_id: Optional[str] = None,
        event_type: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[DeviceHistoryEntry]:
        """Stored items matching every given filter, newest first."""
        db: Session = self._session_factory()
        try:
            q = db.query(DeviceHistoryRecord)
            if location_id is not None:
                q = q.filter(DeviceHistoryRecord.location_id == location_id)
            if device_id is not None:
                q = q.filter(DeviceHistoryRecord.device_id == device_id)
            if event_type is not None:
                q = q.filter(DeviceHistoryRecord.event_type == event_type)
            if start_time is not None:
                q = q.filter(DeviceHistoryRecord.created_at >= to_naive_utc(start_time))
            if end_time is not None:
                q = q.filter(DeviceHistoryRecord.created_at <= to_naive_utc(end_time))
            q = q.order_by(DeviceHistoryRecord.created_at.desc(), DeviceHistoryRecord.id.desc())
            if limit is not None:
                q = q.limit(limit)
            rows = q.all()
        finally:
            db.close()
        return [_entry_from_row(r) for r in rows]

    def get_newest_timestamp(self, location_id: str) -> Optional[datetime]:
        db: Session = self._session_factory()
        try:
            return db.query(func.max(DeviceHistoryRecord.created_at)).filter(
                DeviceHistoryRecord.location_id == location_id
            ).scalar()
        finally:
            db.close()

    def count(self) -> int:
        db: Session = self._session_factory()
        try:
            return db.query(func.count(DeviceHistoryRecord.id)).scalar() or 0
        finally:
            db.close()

    def clear(self) -> None:
        db: Session = self._session_factory()
        try:
            db.query(DeviceHistoryRecord).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def _entry_from_row(row: DeviceHistoryRecord) -> DeviceHistoryEntry:
    return DeviceHistoryEntry(
        id=row.id,
        location_id=row.location_id,
        device_id=row.device_id,
        device_name=row.device_name,
        event_type=row.event_type,
        created_at=row.created_at,
        body=json.loads(row.body),
        cached_at=row.cached_at,
    )
