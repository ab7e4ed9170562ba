# ring_history/services/interfaces.py
"""
Collaborators the crawler and cloud history layer depend on but don't own.
The Ring HTTP transport, device enumeration and token handling live outside
this package; anything that satisfies these protocols can be plugged in.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from ring_history.schemas.cloud import CloudEventPage, CloudVideoResult


class EntityDirectory(Protocol):
    """Enumerates the account's cameras and locations as dicts with at least id + name."""

    async def get_cameras(self) -> List[Dict[str, Any]]: ...

    async def get_locations(self) -> List[Dict[str, Any]]: ...


class RemoteHistory(Protocol):
    """Paged access to Ring's cloud history (normally CloudHistory)."""

    async def get_events(
        self,
        *,
        device_id: Optional[str] = None,
        location_id: Optional[str] = None,
        kind: Optional[str] = None,
        limit: Optional[int] = None,
        pagination_key: Optional[str] = None,
        use_cache: bool = True,
    ) -> CloudEventPage: ...

    async def search_videos(
        self,
        device_id: str,
        date_from: datetime,
        date_to: datetime,
        order: str = "desc",
        use_cache: bool = True,
    ) -> List[CloudVideoResult]: ...

    async def get_device_history(
        self,
        location_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        category: Optional[str] = None,
    ) -> List[Any]: ...


class HistorySink(Protocol):
    """Persists raw device history items and reports how many were new."""

    def insert(self, location_id: str, raw_items: List[Any]) -> int: ...


class RingApi(EntityDirectory, Protocol):
    """
    Raw Ring REST access, returning payloads as the API sends them:
      get_cameras()          → [{"id": 123, "name": "Front Door", "location_id": "abc", ...}]
      get_locations()        → [{"id": "abc", "name": "Home"}]
      get_*_events(...)      → {"events": [...], "meta": {"pagination_key": "..."}}
      video_search(...)      → {"video_search": [...]}
      get_location_history() → [ ...untyped items... ]
    """

    async def get_camera_events(self, device_id: str, **options: Any) -> Dict[str, Any]: ...

    async def get_location_events(self, location_id: str, **options: Any) -> Dict[str, Any]: ...

    async def video_search(
        self, device_id: str, date_from_ms: int, date_to_ms: int, order: str = "desc"
    ) -> Dict[str, Any]: ...

    async def get_location_history(
        self,
        location_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        category: Optional[str] = None,
    ) -> List[Any]: ...

    async def get_recording_url(self, device_id: str, ding_id_str: str, transcoded: bool = False) -> str: ...
