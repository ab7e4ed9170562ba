# ring_history/schemas/cloud.py
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class CvProperties(BaseModel):
    """Computer-vision flags attached to a ding. Values are passed through as Ring sends them."""

    person_detected: Any = None
    detection_type: Any = None
    stream_broken: Any = None


class CloudCameraEvent(BaseModel):
    id: str
    ding_id_str: str
    device_id: str
    device_name: str
    location_id: str
    location_name: str
    kind: str                      # motion | ding | on_demand | alarm | ...
    created_at: datetime
    favorite: bool = False
    recording_status: str = ""
    state: str = ""
    cv_properties: CvProperties = Field(default_factory=CvProperties)

    class Config:
        from_attributes = True


class CloudEventPage(BaseModel):
    events: List[CloudCameraEvent] = Field(default_factory=list)
    pagination_key: Optional[str] = None
    has_more: bool = False


class CloudVideoResult(BaseModel):
    ding_id: str
    device_id: str
    created_at: datetime
    kind: str
    state: str = ""
    duration: float = 0
    favorite: bool = False
    thumbnail_url: Optional[str] = None
    lq_url: str = ""
    hq_url: Optional[str] = None
    untranscoded_url: str = ""
    cv_properties: CvProperties = Field(default_factory=CvProperties)

    class Config:
        from_attributes = True
