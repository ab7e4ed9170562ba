# ring_history/models/cloud_event.py
"""
Cached cloud camera events (dings, motion, on-demand...).
Keyed by Ring's event id so re-caching an event replaces the previous row.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean
from ring_history.database import Base


class CloudEventRecord(Base):
    __tablename__ = "cloud_events"

    id = Column(String(64), primary_key=True)
    ding_id_str = Column(String(64), nullable=False)
    device_id = Column(String(64), nullable=False, index=True)
    device_name = Column(String(255), nullable=False)
    location_id = Column(String(64), nullable=False, index=True)
    location_name = Column(String(255), nullable=False)
    kind = Column(String(50), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, index=True)
    favorite = Column(Boolean, nullable=False, default=False)
    recording_status = Column(String(50), nullable=False)
    state = Column(String(50), nullable=False)
    cv_properties = Column(Text, nullable=False, default="{}")
    cached_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<CloudEvent {self.id} kind={self.kind} cam={self.device_id}>"
