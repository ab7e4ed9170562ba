# tests/test_crawl_store.py
"""Unit tests for the crawl state ledger."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timezone
from ring_history.schemas.crawl import CrawlPhase, CrawlState, CrawlStatus
from ring_history.services.crawl_store import CrawlStore, phase_label


@pytest.fixture
def store(session_factory):
    return CrawlStore(session_factory)


class TestCrawlStore:
    def test_missing_row_returns_none(self, store):
        assert store.get_state("cam-1", CrawlPhase.EVENTS) is None

    def test_upsert_then_read_back(self, store):
        state = CrawlState(
            entity_id="cam-1",
            phase=CrawlPhase.EVENTS,
            status=CrawlStatus.RUNNING,
            pagination_key="abc",
            total_fetched=50,
            oldest_fetched_at=datetime(2026, 1, 1, 8, 0),
        )
        store.upsert_state(state)

        loaded = store.get_state("cam-1", CrawlPhase.EVENTS)
        assert loaded.status == CrawlStatus.RUNNING
        assert loaded.pagination_key == "abc"
        assert loaded.total_fetched == 50
        assert loaded.oldest_fetched_at == datetime(2026, 1, 1, 8, 0)
        assert loaded.updated_at is not None
        assert state.updated_at == loaded.updated_at

    def test_upsert_is_full_row_replace(self, store):
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.EVENTS,
                                      pagination_key="abc", last_error="boom"))
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.EVENTS, total_fetched=3))

        loaded = store.get_state("cam-1", CrawlPhase.EVENTS)
        assert loaded.pagination_key is None
        assert loaded.last_error is None
        assert loaded.total_fetched == 3

    def test_same_entity_different_phases_are_independent(self, store):
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.EVENTS, total_fetched=5))
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.VIDEOS, total_fetched=9))

        assert store.get_state("cam-1", CrawlPhase.EVENTS).total_fetched == 5
        assert store.get_state("cam-1", CrawlPhase.VIDEOS).total_fetched == 9

    def test_aware_datetimes_stored_as_naive_utc(self, store):
        aware = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.EVENTS, newest_fetched_at=aware))
        assert store.get_state("cam-1", CrawlPhase.EVENTS).newest_fetched_at == datetime(2026, 1, 1, 10, 0)

    def test_get_all_states_ordered_and_filtered(self, store):
        store.upsert_state(CrawlState(entity_id="cam-2", phase=CrawlPhase.EVENTS))
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.VIDEOS))
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.EVENTS))

        keys = [(s.entity_id, s.phase) for s in store.get_all_states()]
        assert keys == [
            ("cam-1", CrawlPhase.EVENTS),
            ("cam-1", CrawlPhase.VIDEOS),
            ("cam-2", CrawlPhase.EVENTS),
        ]
        only_videos = store.get_all_states(CrawlPhase.VIDEOS)
        assert [s.entity_id for s in only_videos] == ["cam-1"]

    def test_mark_completed(self, store):
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.EVENTS,
                                      status=CrawlStatus.RUNNING, total_fetched=7))
        store.mark_completed("cam-1", CrawlPhase.EVENTS)

        loaded = store.get_state("cam-1", CrawlPhase.EVENTS)
        assert loaded.status == CrawlStatus.COMPLETED
        assert loaded.completed_at is not None
        assert loaded.total_fetched == 7

    def test_mark_error_keeps_cursor(self, store):
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.EVENTS,
                                      status=CrawlStatus.RUNNING, pagination_key="k2"))
        store.mark_error("cam-1", CrawlPhase.EVENTS, "HTTP 429")

        loaded = store.get_state("cam-1", CrawlPhase.EVENTS)
        assert loaded.status == CrawlStatus.ERROR
        assert loaded.last_error == "HTTP 429"
        assert loaded.pagination_key == "k2"

    def test_mark_on_missing_row_is_noop(self, store):
        store.mark_completed("ghost", CrawlPhase.EVENTS)
        store.mark_error("ghost", CrawlPhase.EVENTS, "x")
        assert store.get_state("ghost", CrawlPhase.EVENTS) is None

    def test_reset_state_returns_row_to_idle(self, store):
        store.upsert_state(CrawlState(
            entity_id="loc-1", phase=CrawlPhase.DEVICE_HISTORY, status=CrawlStatus.COMPLETED,
            pagination_key="150", total_fetched=150, last_error="old",
            started_at=datetime(2026, 1, 1), completed_at=datetime(2026, 1, 2),
        ))
        store.reset_state("loc-1", CrawlPhase.DEVICE_HISTORY)

        loaded = store.get_state("loc-1", CrawlPhase.DEVICE_HISTORY)
        assert loaded.status == CrawlStatus.IDLE
        assert loaded.pagination_key is None
        assert loaded.total_fetched == 0
        assert loaded.last_error is None
        assert loaded.started_at is None
        assert loaded.completed_at is None

    def test_reset_all_clears_ledger(self, store):
        store.upsert_state(CrawlState(entity_id="cam-1", phase=CrawlPhase.EVENTS))
        store.upsert_state(CrawlState(entity_id="loc-1", phase=CrawlPhase.DEVICE_HISTORY))
        store.reset_all()
        assert store.get_all_states() == []

    def test_phase_label(self):
        assert phase_label("cam-1", CrawlPhase.DEVICE_HISTORY) == "cam-1/device_history"
