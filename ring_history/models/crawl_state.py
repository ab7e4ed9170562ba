# ring_history/models/crawl_state.py
"""
Crawl progress ledger: one row per (entity, phase).
entity_id is a camera id for the events/videos phases and a location id for
device_history, so the id alone is not unique.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from ring_history.database import Base


class CrawlStateRecord(Base):
    __tablename__ = "crawl_state"

    entity_id = Column(String(100), primary_key=True)
    phase = Column(String(20), primary_key=True)
    status = Column(String(20), nullable=False, default="idle", index=True)
    pagination_key = Column(Text)          # cursor, stringified offset, or unused (videos)
    oldest_fetched_at = Column(DateTime)
    newest_fetched_at = Column(DateTime)
    total_fetched = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    updated_at = Column(DateTime, nullable=False)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)

    def __repr__(self):
        return f"<CrawlState {self.entity_id}/{self.phase} status={self.status} total={self.total_fetched}>"
