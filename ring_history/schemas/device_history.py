# ring_history/schemas/device_history.py
from pydantic import BaseModel
from datetime import datetime
from typing import Any, Optional


class DeviceHistoryEntry(BaseModel):
    id: int
    location_id: str
    device_id: Optional[str]
    device_name: Optional[str]
    event_type: Optional[str]
    created_at: Optional[datetime]
    body: Any
    cached_at: datetime
