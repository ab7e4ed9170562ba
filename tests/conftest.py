# tests/conftest.py
"""Shared fixtures: an in-memory database per test and fake Ring collaborators."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CRAWL_ENABLED", "false")

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ring_history.database import create_tables
from ring_history.schemas.cloud import CloudCameraEvent, CloudEventPage, CloudVideoResult

NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ── Fakes ────────────────────────────────────────────────────────────────────

class FakeRingApi:
    """In-memory Ring account: two cameras at one location, canned responses."""

    def __init__(self):
        self.cameras = [
            {"id": 101, "name": "Front Door", "location_id": "loc-1"},
            {"id": 102, "name": "Garage", "location_id": "loc-1"},
        ]
        self.locations = [{"id": "loc-1", "name": "Home"}]
        self.camera_events = {}
        self.location_events = {}
        self.videos = {}
        self.history = {}
        self.calls = []

    async def get_cameras(self):
        return list(self.cameras)

    async def get_locations(self):
        return list(self.locations)

    async def get_camera_events(self, device_id, **options):
        self.calls.append(("camera_events", device_id, options))
        return self.camera_events.get(device_id, {"events": [], "meta": {}})

    async def get_location_events(self, location_id, **options):
        self.calls.append(("location_events", location_id, options))
        return self.location_events.get(location_id, {"events": [], "meta": {}})

    async def video_search(self, device_id, date_from_ms, date_to_ms, order="desc"):
        self.calls.append(("video_search", device_id, (date_from_ms, date_to_ms, order)))
        return self.videos.get(device_id, {"video_search": []})

    async def get_location_history(self, location_id, limit=None, offset=None, category=None):
        self.calls.append(("history", location_id, {"limit": limit, "offset": offset}))
        items = self.history.get(location_id, [])
        start = offset or 0
        return items[start:start + limit] if limit else items[start:]

    async def get_recording_url(self, device_id, ding_id_str, transcoded=False):
        return f"https://download.ring.test/{device_id}/{ding_id_str}?transcoded={transcoded}"


class FakeDirectory:
    def __init__(self, cameras=None, locations=None):
        self.cameras = cameras if cameras is not None else [{"id": "cam-1", "name": "Front Door"}]
        self.locations = locations if locations is not None else [{"id": "loc-1", "name": "Home"}]
        self.camera_error = None

    async def get_cameras(self):
        if self.camera_error:
            raise self.camera_error
        return list(self.cameras)

    async def get_locations(self):
        return list(self.locations)


class FakeRemote:
    """
    Scripted cloud history.
      event_pages[(device_id, cursor)]  → CloudEventPage or an Exception to raise
      videos[device_id]                 → CloudVideoResults, filtered by window
      history[location_id]              → raw items, sliced by offset/limit
      hooks[(device_id, cursor)]        → called before that page is returned
    """

    def __init__(self):
        self.event_pages = {}
        self.videos = {}
        self.history = {}
        self.hooks = {}
        self.event_calls = []
        self.video_calls = []
        self.video_cache_flags = []
        self.history_calls = []

    async def get_events(self, *, device_id=None, location_id=None, kind=None,
                         limit=None, pagination_key=None, use_cache=True):
        self.event_calls.append((device_id, pagination_key, use_cache))
        hook = self.hooks.get((device_id, pagination_key))
        if hook:
            hook()
        page = self.event_pages.get((device_id, pagination_key), CloudEventPage())
        if isinstance(page, Exception):
            raise page
        return page

    async def search_videos(self, device_id, date_from, date_to, order="desc", use_cache=True):
        self.video_calls.append((device_id, date_from, date_to))
        self.video_cache_flags.append(use_cache)
        return [v for v in self.videos.get(device_id, []) if date_from <= v.created_at <= date_to]

    async def get_device_history(self, location_id, limit=None, offset=None, category=None):
        self.history_calls.append((location_id, limit, offset))
        items = self.history.get(location_id, [])
        if isinstance(items, Exception):
            raise items
        start = offset or 0
        return items[start:start + limit]


def make_event(ding_id, created_at, device_id="cam-1", favorite=False, kind="motion"):
    return CloudCameraEvent(
        id=str(ding_id),
        ding_id_str=str(ding_id),
        device_id=device_id,
        device_name="Front Door",
        location_id="loc-1",
        location_name="Home",
        kind=kind,
        created_at=created_at,
        favorite=favorite,
    )


def make_page(events, key=None):
    return CloudEventPage(events=events, pagination_key=key, has_more=key is not None and bool(events))


def make_video(ding_id, created_at, device_id="cam-1"):
    return CloudVideoResult(
        ding_id=str(ding_id),
        device_id=device_id,
        created_at=created_at,
        kind="motion",
        duration=30.0,
        lq_url=f"https://videos.ring.test/{ding_id}.mp4",
    )


@pytest.fixture
def ring_api():
    return FakeRingApi()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def remote():
    return FakeRemote()
