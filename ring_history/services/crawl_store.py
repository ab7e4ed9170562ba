# ring_history/services/crawl_store.py
"""
Crawl state ledger. Tracks the progress of the historic crawl for each
entity (camera or location) and phase (events, videos, device_history).

Every call opens its own short session, so each mutation is a single
transaction scoped to one (entity_id, phase) key. This table is the only
thing the crawler needs to resume after a restart.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, sessionmaker

from ring_history.models.crawl_state import CrawlStateRecord
from ring_history.schemas.crawl import CrawlPhase, CrawlState, CrawlStatus
from ring_history.utils.logger import get_logger
from ring_history.utils.timeutil import utcnow, to_naive_utc

logger = get_logger(__name__)

_STATE_FIELDS = (
    "status", "pagination_key", "oldest_fetched_at", "newest_fetched_at",
    "total_fetched", "last_error", "started_at", "completed_at",
)


class CrawlStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_state(self, entity_id: str, phase: CrawlPhase) -> Optional[CrawlState]:
        """Return the ledger row for an entity+phase, or None if never crawled."""
        db: Session = self._session_factory()
        try:
            record = db.get(CrawlStateRecord, (entity_id, CrawlPhase(phase).value))
            return _to_state(record) if record else None
        finally:
            db.close()

    def get_all_states(self, phase: Optional[CrawlPhase] = None) -> List[CrawlState]:
        """All ledger rows ordered by entity id then phase, optionally for one phase."""
        db: Session = self._session_factory()
        try:
            q = db.query(CrawlStateRecord)
            if phase is not None:
                q = q.filter(CrawlStateRecord.phase == CrawlPhase(phase).value)
            rows = q.order_by(CrawlStateRecord.entity_id, CrawlStateRecord.phase).all()
            return [_to_state(r) for r in rows]
        finally:
            db.close()

    def upsert_state(self, state: CrawlState) -> None:
        """Full-row replace of the entity+phase ledger row. Always stamps updated_at."""
        now = utcnow()
        db: Session = self._session_factory()
        try:
            key = (state.entity_id, CrawlPhase(state.phase).value)
            record = db.get(CrawlStateRecord, key)
            if record is None:
                record = CrawlStateRecord(entity_id=key[0], phase=key[1])
                db.add(record)
            for field in _STATE_FIELDS:
                value = getattr(state, field)
                if isinstance(value, datetime):
                    value = to_naive_utc(value)
                setattr(record, field, value)
            record.status = CrawlStatus(state.status).value
            record.updated_at = now
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        state.updated_at = now

    def mark_completed(self, entity_id: str, phase: CrawlPhase) -> None:
        existing = self.get_state(entity_id, phase)
        if existing is None:
            return
        existing.status = CrawlStatus.COMPLETED
        existing.completed_at = utcnow()
        self.upsert_state(existing)
        logger.info(f"[CRAWL] {phase_label(entity_id, phase)} completed ({existing.total_fetched} fetched)")

    def mark_error(self, entity_id: str, phase: CrawlPhase, message: str) -> None:
        existing = self.get_state(entity_id, phase)
        if existing is None:
            return
        existing.status = CrawlStatus.ERROR
        existing.last_error = message
        self.upsert_state(existing)

    def reset_state(self, entity_id: str, phase: CrawlPhase) -> None:
        """Put the row back to its post-creation baseline, keeping its identity."""
        db: Session = self._session_factory()
        try:
            record = db.get(CrawlStateRecord, (entity_id, CrawlPhase(phase).value))
            if record is None:
                return
            record.status = CrawlStatus.IDLE.value
            record.pagination_key = None
            record.oldest_fetched_at = None
            record.newest_fetched_at = None
            record.total_fetched = 0
            record.last_error = None
            record.started_at = None
            record.completed_at = None
            record.updated_at = utcnow()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.info(f"[CRAWL] {phase_label(entity_id, phase)} reset to idle")

    def reset_all(self) -> None:
        """Delete every ledger row (full re-backfill)."""
        db: Session = self._session_factory()
        try:
            deleted = db.query(CrawlStateRecord).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.warning(f"[CRAWL] Ledger cleared ({deleted} rows)")


def phase_label(entity_id: str, phase: CrawlPhase) -> str:
    return f"{entity_id}/{CrawlPhase(phase).value}"


def _to_state(record: CrawlStateRecord) -> CrawlState:
    return CrawlState.model_validate(record)
