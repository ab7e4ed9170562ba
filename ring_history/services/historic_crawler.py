# ring_history/services/historic_crawler.py
"""
Historic data crawler — runs in the background to fetch and persist all
historical Ring cloud events, video metadata and device history for every
camera and location.

Three crawl phases per entity:
  1. events          cursor pagination per camera
  2. videos          date-window pagination per camera, walking back from now
  3. device_history  offset pagination per location

Progress is written to the CrawlStore after every page, so a crawl survives
process restarts and resumes from the last committed cursor. Phases run one
at a time across all entities to share a single API rate-limit budget.
Once every phase has been attempted, an owned incremental-refresh task
re-polls the newest data on a fixed interval until stop() is called.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional

from ring_history.schemas.crawl import (
    CameraCrawlStatus, CrawlConfig, CrawlPhase, CrawlState, CrawlStatus,
    CrawlStatusReport, CrawlSummary, LocationCrawlStatus, PhaseProgress,
)
from ring_history.services.crawl_store import CrawlStore, phase_label
from ring_history.services.interfaces import EntityDirectory, HistorySink, RemoteHistory
from ring_history.utils.history_fields import extract_timestamp
from ring_history.utils.logger import get_logger
from ring_history.utils.timeutil import to_naive_utc, utcnow

logger = get_logger(__name__)


class HistoricCrawler:
    def __init__(
        self,
        directory: EntityDirectory,
        remote: RemoteHistory,
        store: CrawlStore,
        sink: HistorySink,
        config: Optional[CrawlConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.directory = directory
        self.remote = remote
        self.store = store
        self.sink = sink
        self.config = config or CrawlConfig()
        self._clock = clock or utcnow

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._backfill_task: Optional[asyncio.Task] = None
        self._incremental_task: Optional[asyncio.Task] = None

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Launch the backfill as a background task and return immediately."""
        if self._running:
            return
        self._running = True
        stop = asyncio.Event()
        self._stop_event = stop
        # A previous run may still be settling its last page into `paused`
        previous = self._backfill_task
        self._backfill_task = asyncio.create_task(
            self._run_backfill(stop, previous), name="historic-crawl-backfill"
        )
        logger.info("🚀 Historic crawler started")

    def stop(self) -> None:
        """Signal cancellation. In-flight phases persist `paused` at the next page boundary."""
        was_running = self._running
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._incremental_task is not None:
            self._incremental_task.cancel()
            self._incremental_task = None
        if was_running:
            logger.info("🛑 Historic crawler stopping")

    @property
    def is_running(self) -> bool:
        return self._running

    async def wait_idle(self) -> None:
        """Wait for the current backfill pass (not the incremental loop) to finish."""
        if self._backfill_task is not None:
            await asyncio.wait([self._backfill_task])

    # ── Backfill ─────────────────────────────────────────────────────────────

    async def _run_backfill(self, stop: asyncio.Event, previous: Optional[asyncio.Task]) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await self._backfill_cameras(stop)
            if not stop.is_set():
                await self._backfill_locations(stop)
        except Exception as e:
            logger.error(f"❌ Backfill failed: {e}", exc_info=True)
            return

        if stop.is_set():
            logger.info("⏸  Backfill paused")
            return

        logger.info("✅ Backfill pass finished — switching to incremental refresh "
                    f"every {self.config.incremental_interval_minutes} min")
        self._incremental_task = asyncio.create_task(
            self._incremental_loop(stop), name="historic-crawl-incremental"
        )

    async def _backfill_cameras(self, stop: asyncio.Event) -> None:
        try:
            cameras = await self.directory.get_cameras()
        except Exception as e:
            logger.error(f"❌ Cannot enumerate cameras, skipping events/videos: {e}")
            return

        for camera in cameras:
            if stop.is_set():
                return
            device_id = str(camera["id"])
            await self._crawl_events(device_id, stop)
            if stop.is_set():
                return
            await self._crawl_videos(device_id, stop)

    async def _backfill_locations(self, stop: asyncio.Event) -> None:
        try:
            locations = await self.directory.get_locations()
        except Exception as e:
            logger.error(f"❌ Cannot enumerate locations, skipping device history: {e}")
            return

        for location in locations:
            if stop.is_set():
                return
            await self._crawl_device_history(str(location["id"]), stop)

    def _begin_phase(self, entity_id: str, phase: CrawlPhase) -> Optional[CrawlState]:
        """
        Load or create the ledger row and mark it running.
        Returns None when the phase is already completed.
        idle/absent rows start fresh; paused, error and stale running rows resume.
        """
        state = self.store.get_state(entity_id, phase)
        if state is not None and state.status == CrawlStatus.COMPLETED:
            logger.debug(f"[CRAWL] {phase_label(entity_id, phase)} already completed, skipping")
            return None

        if state is None or state.status == CrawlStatus.IDLE:
            state = CrawlState(
                entity_id=entity_id,
                phase=phase,
                status=CrawlStatus.RUNNING,
                started_at=self._clock(),
            )
            logger.info(f"[CRAWL] {phase_label(entity_id, phase)} starting")
        else:
            logger.info(f"[CRAWL] {phase_label(entity_id, phase)} resuming from "
                        f"{state.status.value} (key={state.pagination_key} total={state.total_fetched})")
            state.status = CrawlStatus.RUNNING
            if state.started_at is None:
                state.started_at = self._clock()

        self.store.upsert_state(state)
        return state

    def _pause_phase(self, state: CrawlState) -> None:
        state.status = CrawlStatus.PAUSED
        self.store.upsert_state(state)
        logger.info(f"[CRAWL] {phase_label(state.entity_id, state.phase)} paused "
                    f"(key={state.pagination_key} total={state.total_fetched})")

    def _fail_phase(self, state: CrawlState, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        logger.error(f"❌ [CRAWL] {phase_label(state.entity_id, state.phase)} failed: {message}")
        self.store.mark_error(state.entity_id, state.phase, message)

    async def _crawl_events(self, device_id: str, stop: asyncio.Event) -> None:
        state = self._begin_phase(device_id, CrawlPhase.EVENTS)
        if state is None:
            return

        cursor = state.pagination_key
        try:
            while True:
                if stop.is_set():
                    self._pause_phase(state)
                    return

                page = await self.remote.get_events(
                    device_id=device_id,
                    limit=self.config.page_size,
                    pagination_key=cursor,
                    use_cache=False,
                )
                if not page.events:
                    break

                # The page is already persisted (cached) by the remote layer
                state.total_fetched += len(page.events)
                state.pagination_key = page.pagination_key
                state.last_error = None
                _widen(state, (e.created_at for e in page.events))
                self.store.upsert_state(state)

                # A page without a cursor cannot be continued, whatever has_more says
                if not page.has_more or page.pagination_key is None:
                    break
                cursor = page.pagination_key
                await self._pause_between_pages(stop)

            self.store.mark_completed(device_id, CrawlPhase.EVENTS)
        except Exception as e:
            self._fail_phase(state, e)

    async def _crawl_videos(self, device_id: str, stop: asyncio.Event) -> None:
        state = self._begin_phase(device_id, CrawlPhase.VIDEOS)
        if state is None:
            return

        # pagination_key is unused here: the oldest window bound is the resume point
        window = timedelta(days=self.config.video_window_days)
        now = self._clock()
        cutoff = now - timedelta(days=self.config.max_history_days)
        date_to = state.oldest_fetched_at or now

        try:
            while date_to > cutoff:
                if stop.is_set():
                    self._pause_phase(state)
                    return

                date_from = max(date_to - window, cutoff)
                videos = await self.remote.search_videos(device_id, date_from, date_to, order="desc", use_cache=False)

                state.total_fetched += len(videos)
                state.oldest_fetched_at = date_from
                state.last_error = None
                newest = max((to_naive_utc(v.created_at) for v in videos), default=None)
                if newest is not None and (state.newest_fetched_at is None or newest > state.newest_fetched_at):
                    state.newest_fetched_at = newest
                self.store.upsert_state(state)

                date_to = date_from
                await self._pause_between_pages(stop)

            self.store.mark_completed(device_id, CrawlPhase.VIDEOS)
        except Exception as e:
            self._fail_phase(state, e)

    async def _crawl_device_history(self, location_id: str, stop: asyncio.Event) -> None:
        state = self._begin_phase(location_id, CrawlPhase.DEVICE_HISTORY)
        if state is None:
            return

        offset = _parse_offset(state.pagination_key)
        page_size = self.config.page_size
        try:
            while True:
                if stop.is_set():
                    state.pagination_key = str(offset)
                    self._pause_phase(state)
                    return

                items = await self.remote.get_device_history(location_id, limit=page_size, offset=offset)
                if not items:
                    break

                # Only newly stored items count; earlier interrupted runs may have stored some
                inserted = self.sink.insert(location_id, items)
                state.total_fetched += inserted
                state.last_error = None
                _widen(state, (extract_timestamp(item) for item in items))

                offset += len(items)
                state.pagination_key = str(offset)
                self.store.upsert_state(state)

                if len(items) < page_size:
                    break
                await self._pause_between_pages(stop)

            self.store.mark_completed(location_id, CrawlPhase.DEVICE_HISTORY)
        except Exception as e:
            self._fail_phase(state, e)

    async def _pause_between_pages(self, stop: asyncio.Event) -> None:
        """Rate-limit delay that returns early as soon as stop() is called."""
        seconds = self.config.delay_ms / 1000
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ── Incremental refresh ──────────────────────────────────────────────────

    async def _incremental_loop(self, stop: asyncio.Event) -> None:
        interval = self.config.incremental_interval_minutes * 60
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
                return
            except asyncio.TimeoutError:
                pass
            await self.run_incremental_once(stop)

    async def run_incremental_once(self, stop: Optional[asyncio.Event] = None) -> None:
        """
        Re-poll the newest page for every camera (events) and location
        (device_history). Only touches existing ledger rows, only adds to
        total_fetched, and never moves oldest_fetched_at.
        """
        stop = stop or asyncio.Event()
        try:
            cameras = await self.directory.get_cameras()
        except Exception as e:
            logger.error(f"❌ Incremental: cannot enumerate cameras: {e}")
            cameras = []

        for camera in cameras:
            if stop.is_set():
                return
            device_id = str(camera["id"])
            try:
                await self._refresh_events(device_id)
            except Exception as e:
                logger.error(f"❌ Incremental events refresh failed for {device_id}: {e}")
            await self._pause_between_pages(stop)

        if stop.is_set():
            return
        try:
            locations = await self.directory.get_locations()
        except Exception as e:
            logger.error(f"❌ Incremental: cannot enumerate locations: {e}")
            return

        for location in locations:
            if stop.is_set():
                return
            location_id = str(location["id"])
            try:
                await self._refresh_device_history(location_id)
            except Exception as e:
                logger.error(f"❌ Incremental device history refresh failed for {location_id}: {e}")
            await self._pause_between_pages(stop)

    async def _refresh_events(self, device_id: str) -> None:
        # Entities the backfill has not reached yet are left to the backfill
        state = self.store.get_state(device_id, CrawlPhase.EVENTS)
        if state is None:
            return
        page = await self.remote.get_events(device_id=device_id, limit=self.config.page_size, use_cache=False)
        if not page.events:
            return

        newest_known = state.newest_fetched_at
        fresh = [to_naive_utc(e.created_at) for e in page.events]
        if newest_known is not None:
            fresh = [ts for ts in fresh if ts > newest_known]
        if not fresh:
            return

        state.total_fetched += len(fresh)
        state.newest_fetched_at = max(fresh)
        self.store.upsert_state(state)
        logger.info(f"[CRAWL] {phase_label(device_id, CrawlPhase.EVENTS)} +{len(fresh)} new events")

    async def _refresh_device_history(self, location_id: str) -> None:
        state = self.store.get_state(location_id, CrawlPhase.DEVICE_HISTORY)
        if state is None:
            return
        items = await self.remote.get_device_history(location_id, limit=self.config.page_size, offset=0)
        if not items:
            return
        inserted = self.sink.insert(location_id, items)
        if inserted == 0:
            return

        state.total_fetched += inserted
        newest = max((t for t in (extract_timestamp(i) for i in items) if t is not None), default=None)
        if newest is not None and (state.newest_fetched_at is None or newest > state.newest_fetched_at):
            state.newest_fetched_at = newest
        self.store.upsert_state(state)
        logger.info(f"[CRAWL] {phase_label(location_id, CrawlPhase.DEVICE_HISTORY)} +{inserted} new items")

    # ── Status ───────────────────────────────────────────────────────────────

    async def get_status(self) -> CrawlStatusReport:
        """
        Aggregate every ledger row into a per-camera / per-location report.
        Names come from the directory on a best-effort basis; known entities
        without a ledger row show up as idle with zero progress.
        """
        camera_names: Dict[str, str] = {}
        location_names: Dict[str, str] = {}
        try:
            camera_names = {str(c["id"]): c.get("name") or str(c["id"]) for c in await self.directory.get_cameras()}
            location_names = {str(loc["id"]): loc.get("name") or str(loc["id"]) for loc in await self.directory.get_locations()}
        except Exception as e:
            logger.debug(f"Status: directory unavailable, using ids as names ({e})")

        cameras: Dict[str, CameraCrawlStatus] = {}
        locations: Dict[str, LocationCrawlStatus] = {}

        def camera_entry(device_id: str) -> CameraCrawlStatus:
            if device_id not in cameras:
                cameras[device_id] = CameraCrawlStatus(
                    device_id=device_id, device_name=camera_names.get(device_id, device_id))
            return cameras[device_id]

        def location_entry(location_id: str) -> LocationCrawlStatus:
            if location_id not in locations:
                locations[location_id] = LocationCrawlStatus(
                    location_id=location_id, location_name=location_names.get(location_id, location_id))
            return locations[location_id]

        for device_id in camera_names:
            camera_entry(device_id)
        for location_id in location_names:
            location_entry(location_id)

        summary = CrawlSummary()
        for state in self.store.get_all_states():
            progress = _progress(state)
            if state.phase == CrawlPhase.EVENTS:
                camera_entry(state.entity_id).events = progress
                summary.total_events_fetched += state.total_fetched
            elif state.phase == CrawlPhase.VIDEOS:
                camera_entry(state.entity_id).videos = progress
                summary.total_videos_fetched += state.total_fetched
            else:
                location_entry(state.entity_id).device_history = progress
                summary.total_device_history_fetched += state.total_fetched

        summary.total_cameras = len(cameras)
        summary.cameras_completed = sum(
            1 for c in cameras.values()
            if c.events.status == CrawlStatus.COMPLETED and c.videos.status == CrawlStatus.COMPLETED
        )
        summary.total_locations = len(locations)
        summary.locations_completed = sum(
            1 for loc in locations.values() if loc.device_history.status == CrawlStatus.COMPLETED
        )

        return CrawlStatusReport(
            running=self._running,
            cameras=sorted(cameras.values(), key=lambda c: c.device_id),
            locations=sorted(locations.values(), key=lambda loc: loc.location_id),
            summary=summary,
        )


def _widen(state: CrawlState, timestamps: Iterable[Any]) -> None:
    """Extend oldest/newest bounds to cover the given timestamps (None entries ignored)."""
    for ts in timestamps:
        if ts is None:
            continue
        ts = to_naive_utc(ts)
        if state.oldest_fetched_at is None or ts < state.oldest_fetched_at:
            state.oldest_fetched_at = ts
        if state.newest_fetched_at is None or ts > state.newest_fetched_at:
            state.newest_fetched_at = ts


def _parse_offset(key: Optional[str]) -> int:
    if not key:
        return 0
    try:
        return max(0, int(key))
    except ValueError:
        logger.warning(f"Ignoring unparseable device history offset {key!r}, restarting at 0")
        return 0


def _progress(state: CrawlState) -> PhaseProgress:
    return PhaseProgress(
        status=state.status,
        total_fetched=state.total_fetched,
        oldest_fetched_at=state.oldest_fetched_at,
        newest_fetched_at=state.newest_fetched_at,
        last_error=state.last_error,
    )
