# ring_history/models/cloud_video.py
"""Cached video search results, keyed by ding id."""

from sqlalchemy import Column, String, DateTime, Text, Boolean, Float
from ring_history.database import Base


class CloudVideoRecord(Base):
    __tablename__ = "cloud_videos"

    ding_id = Column(String(64), primary_key=True)
    device_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, index=True)
    kind = Column(String(50), nullable=False)
    state = Column(String(50), nullable=False)
    duration = Column(Float, nullable=False, default=0)
    favorite = Column(Boolean, nullable=False, default=False)
    thumbnail_url = Column(Text)
    lq_url = Column(Text, nullable=False)
    hq_url = Column(Text)
    untranscoded_url = Column(Text, nullable=False)
    cv_properties = Column(Text, nullable=False, default="{}")
    cached_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<CloudVideo {self.ding_id} cam={self.device_id}>"
