# tests/test_cloud_cache.py
"""Unit tests for the cloud event / video cache."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import timedelta
from ring_history.schemas.cloud import CvProperties
from ring_history.services.cloud_cache import CloudCache
from conftest import NOW, make_event, make_video


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def cache(session_factory, clock):
    return CloudCache(session_factory, max_age=timedelta(minutes=30), clock=clock)


class TestCachedEvents:
    def test_empty_cache_is_a_miss(self, cache):
        assert cache.get_cached_events(device_id="cam-1") is None

    def test_hit_returns_newest_first(self, cache):
        cache.cache_events([
            make_event("e1", NOW - timedelta(hours=3)),
            make_event("e2", NOW - timedelta(hours=1)),
            make_event("e3", NOW - timedelta(hours=2)),
        ])
        events = cache.get_cached_events(device_id="cam-1")
        assert [e.id for e in events] == ["e2", "e3", "e1"]

    def test_filters_and_limit(self, cache):
        cache.cache_events([
            make_event("e1", NOW - timedelta(hours=1), kind="ding"),
            make_event("e2", NOW - timedelta(hours=2), kind="motion"),
            make_event("e3", NOW - timedelta(hours=3), device_id="cam-2"),
        ])
        assert [e.id for e in cache.get_cached_events(device_id="cam-1", kind="motion")] == ["e2"]
        assert [e.id for e in cache.get_cached_events(location_id="loc-1", limit=2)] == ["e1", "e2"]
        assert cache.get_cached_events(device_id="cam-9") is None

    def test_fresh_just_inside_max_age(self, cache, clock):
        cache.cache_events([make_event("e1", NOW - timedelta(hours=1))])
        clock.now = NOW + timedelta(minutes=29, seconds=59)
        assert cache.get_cached_events(device_id="cam-1") is not None

    def test_stale_at_exactly_max_age(self, cache, clock):
        cache.cache_events([make_event("e1", NOW - timedelta(hours=1))])
        clock.now = NOW + timedelta(minutes=30)
        assert cache.get_cached_events(device_id="cam-1") is None

    def test_recache_overwrites_and_refreshes(self, cache, clock):
        cache.cache_events([make_event("e1", NOW - timedelta(hours=1), favorite=False)])
        clock.now = NOW + timedelta(minutes=20)
        cache.cache_events([make_event("e1", NOW - timedelta(hours=1), favorite=True)])
        clock.now = NOW + timedelta(minutes=45)

        events = cache.get_cached_events(device_id="cam-1")
        assert len(events) == 1
        assert events[0].favorite is True

    def test_cv_properties_round_trip(self, cache):
        event = make_event("e1", NOW)
        event.cv_properties = CvProperties(person_detected=True, detection_type="human")
        cache.cache_events([event])

        cached = cache.get_cached_events(device_id="cam-1")[0]
        assert cached.cv_properties.person_detected is True
        assert cached.cv_properties.detection_type == "human"
        assert cached.cv_properties.stream_broken is None


class TestCachedVideos:
    def test_window_and_camera_filter(self, cache):
        cache.cache_videos([
            make_video("v1", NOW - timedelta(days=1)),
            make_video("v2", NOW - timedelta(days=5)),
            make_video("v3", NOW - timedelta(days=1), device_id="cam-2"),
        ])
        videos = cache.get_cached_videos("cam-1", NOW - timedelta(days=2), NOW)
        assert [v.ding_id for v in videos] == ["v1"]

    def test_miss_outside_window(self, cache):
        cache.cache_videos([make_video("v1", NOW - timedelta(days=10))])
        assert cache.get_cached_videos("cam-1", NOW - timedelta(days=2), NOW) is None

    def test_stale_videos_are_a_miss(self, cache, clock):
        cache.cache_videos([make_video("v1", NOW - timedelta(days=1))])
        clock.now = NOW + timedelta(hours=1)
        assert cache.get_cached_videos("cam-1", NOW - timedelta(days=2), NOW) is None


class TestPrune:
    def test_prune_removes_only_stale_rows(self, cache, clock):
        cache.cache_events([make_event("old", NOW - timedelta(hours=5))])
        cache.cache_videos([make_video("old-v", NOW - timedelta(days=1))])
        clock.now = NOW + timedelta(minutes=40)
        cache.cache_events([make_event("new", NOW)])

        assert cache.prune_stale() == 2
        assert [e.id for e in cache.get_cached_events()] == ["new"]

    def test_prune_keeps_row_at_exact_boundary(self, cache, clock):
        cache.cache_events([make_event("e1", NOW)])
        clock.now = NOW + timedelta(minutes=30)
        assert cache.prune_stale() == 0

    def test_prune_on_empty_cache(self, cache):
        assert cache.prune_stale() == 0
