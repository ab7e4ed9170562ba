# ring_history/schemas/crawl.py
from enum import Enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CrawlPhase(str, Enum):
    EVENTS = "events"                  # cursor pagination, per camera
    VIDEOS = "videos"                  # date-window pagination, per camera
    DEVICE_HISTORY = "device_history"  # offset pagination, per location


class CrawlStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    PAUSED = "paused"


class CrawlState(BaseModel):
    """Persisted progress of one (entity, phase) crawl track."""

    entity_id: str
    phase: CrawlPhase
    status: CrawlStatus = CrawlStatus.IDLE
    pagination_key: Optional[str] = None
    oldest_fetched_at: Optional[datetime] = None
    newest_fetched_at: Optional[datetime] = None
    total_fetched: int = 0
    last_error: Optional[str] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CrawlConfig(BaseModel):
    enabled: bool = False
    delay_ms: int = 2000
    page_size: int = 50
    video_window_days: int = 7
    incremental_interval_minutes: float = 15
    max_history_days: int = 180


class PhaseProgress(BaseModel):
    status: CrawlStatus = CrawlStatus.IDLE
    total_fetched: int = 0
    oldest_fetched_at: Optional[datetime] = None
    newest_fetched_at: Optional[datetime] = None
    last_error: Optional[str] = None


class CameraCrawlStatus(BaseModel):
    device_id: str
    device_name: str
    events: PhaseProgress = Field(default_factory=PhaseProgress)
    videos: PhaseProgress = Field(default_factory=PhaseProgress)


class LocationCrawlStatus(BaseModel):
    location_id: str
    location_name: str
    device_history: PhaseProgress = Field(default_factory=PhaseProgress)


class CrawlSummary(BaseModel):
    total_cameras: int = 0
    cameras_completed: int = 0
    total_locations: int = 0
    locations_completed: int = 0
    total_events_fetched: int = 0
    total_videos_fetched: int = 0
    total_device_history_fetched: int = 0


class CrawlStatusReport(BaseModel):
    running: bool
    cameras: List[CameraCrawlStatus]
    locations: List[LocationCrawlStatus]
    summary: CrawlSummary
