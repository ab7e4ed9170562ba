# ring_history/models/device_history.py
"""
Alarm / beams device history events.
The Ring API returns these untyped, so the full JSON body is kept alongside
a few best-effort index columns.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from ring_history.database import Base


class DeviceHistoryRecord(Base):
    __tablename__ = "device_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    location_id = Column(String(64), nullable=False, index=True)
    device_id = Column(String(64), index=True)
    device_name = Column(String(255))
    event_type = Column(String(100), index=True)
    created_at = Column(DateTime, index=True)
    body = Column(Text, nullable=False)
    cached_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<DeviceHistory {self.id} loc={self.location_id} type={self.event_type}>"
