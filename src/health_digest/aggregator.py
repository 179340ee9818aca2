"""Aggregator: joins all source adapters into one Snapshot per fetch cycle."""

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime
from enum import Enum

import structlog
from opentelemetry import trace

from .config import SourceSettings
from .metrics import FETCH_CYCLES, SNAPSHOT_PENDING_QUERIES
from .models import MetricSpec, Snapshot
from .sources.base import (
    Clock,
    PendingQueries,
    calendar_window,
    local_now,
    today_window,
    trailing_days_window,
)
from .sources.calendar import CalendarSourceAdapter, classify
from .sources.metrics import DEFAULT_METRIC_SPECS, MetricSourceAdapter
from .sources.workouts import WorkoutSourceAdapter

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

SnapshotListener = Callable[[Snapshot], None]


class AggregatorState(str, Enum):
    """Aggregator lifecycle states."""

    IDLE = "idle"
    FETCH_IN_PROGRESS = "fetch_in_progress"
    READY = "ready"


class Aggregator:
    """Owns the current Snapshot and coordinates fetch cycles.

    Every :meth:`refresh` call starts a new fetch cycle that dispatches all
    adapter queries concurrently and joins them. The Snapshot is published
    once, after the cycle's pending-query count has reached zero.

    Overlapping cycles follow a supersede policy: each cycle takes a
    generation number and a cycle may publish only if no newer cycle has
    published or is still in flight. An older cycle that finishes later is
    discarded, so a stale Snapshot never replaces a newer one. A newer cycle
    that is cancelled or fails no longer supersedes anything.
    """

    def __init__(
        self,
        metrics: MetricSourceAdapter,
        workouts: WorkoutSourceAdapter,
        calendar: CalendarSourceAdapter,
        specs: Sequence[MetricSpec] = DEFAULT_METRIC_SPECS,
        settings: SourceSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._metrics = metrics
        self._workouts = workouts
        self._calendar = calendar
        self._specs = tuple(specs)
        self._settings = settings or SourceSettings()
        self._clock = clock or local_now

        self._lock = asyncio.Lock()
        self._generation = 0
        self._published = 0
        self._live: set[int] = set()
        self._state = AggregatorState.IDLE
        self._snapshot: Snapshot | None = None
        self._tracker: PendingQueries | None = None
        self._listeners: list[SnapshotListener] = []
        self._ready = asyncio.Event()

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def snapshot(self) -> Snapshot | None:
        """Most recently published Snapshot, or None before the first one."""
        return self._snapshot

    @property
    def pending(self) -> int:
        """Outstanding queries of the latest fetch cycle."""
        return self._tracker.pending if self._tracker else 0

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener called with each published Snapshot.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _pending_observer(self, generation: int) -> Callable[[int], None]:
        def observe(pending: int) -> None:
            if generation == self._generation:
                SNAPSHOT_PENDING_QUERIES.set(pending)

        return observe

    async def refresh(self) -> Snapshot | None:
        """Run one fetch cycle.

        Returns:
            The published Snapshot, or None if a later cycle superseded this one.
        """
        async with self._lock:
            self._generation += 1
            generation = self._generation
            tracker = PendingQueries(on_change=self._pending_observer(generation))
            self._tracker = tracker
            self._live.add(generation)
            self._state = AggregatorState.FETCH_IN_PROGRESS
            self._ready.clear()

        now = self._clock()
        logger.info("fetch_cycle_started", generation=generation)

        try:
            with tracer.start_as_current_span("fetch_cycle") as span:
                span.set_attribute("fetch.generation", generation)
                snapshot = await self._collect(now, tracker)
                span.set_attribute("fetch.queries", tracker.dispatched)

            if tracker.pending:
                raise RuntimeError(f"Fetch cycle joined with {tracker.pending} queries pending")
        except BaseException as e:
            self._abandon(generation, e)
            raise

        async with self._lock:
            self._live.discard(generation)
            if generation < self._published or any(g > generation for g in self._live):
                FETCH_CYCLES.labels(status="superseded").inc()
                logger.info(
                    "fetch_cycle_superseded",
                    generation=generation,
                    latest=self._generation,
                )
                return None
            self._snapshot = snapshot
            self._published = generation
            self._state = AggregatorState.READY
            self._ready.set()

        FETCH_CYCLES.labels(status="published").inc()
        logger.info(
            "snapshot_published",
            generation=generation,
            queries=tracker.dispatched,
            metrics=len(snapshot.metrics),
            workouts=len(snapshot.workouts),
        )
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning("snapshot_listener_failed", error=str(e))
        return snapshot

    def _abandon(self, generation: int, error: BaseException) -> None:
        """Drop a cycle that was cancelled or failed before publishing.

        Once no cycle is left in flight, the state falls back and waiters in
        :meth:`latest` are woken.
        """
        self._live.discard(generation)
        FETCH_CYCLES.labels(status="abandoned").inc()
        logger.warning(
            "fetch_cycle_abandoned",
            generation=generation,
            error=type(error).__name__,
        )
        if not self._live:
            if self._snapshot is not None:
                self._state = AggregatorState.READY
            else:
                self._state = AggregatorState.IDLE
            self._ready.set()

    async def latest(self) -> Snapshot:
        """Run a fetch cycle and return the newest published Snapshot.

        If this cycle is superseded, waits for the cycle that replaced it. If
        that cycle is abandoned without publishing, a new cycle is started.
        """
        while True:
            floor = self._generation
            snapshot = await self.refresh()
            if snapshot is not None:
                return snapshot
            await self._ready.wait()
            if self._published > floor and self._snapshot is not None:
                return self._snapshot

    async def _collect(self, now: datetime, tracker: PendingQueries) -> Snapshot:
        metrics, sleep, mindful, workouts, events, reminders = await asyncio.gather(
            self._metrics.fetch_metrics(self._specs, today_window(now), tracker),
            self._metrics.fetch_sleep(
                trailing_days_window(now, self._settings.sleep_lookback_days), tracker
            ),
            self._metrics.fetch_latest_mindful_session(
                trailing_days_window(now, self._settings.sleep_lookback_days), tracker
            ),
            self._workouts.list_workouts_with_activities(
                self._settings.workout_detail_limit, tracker
            ),
            self._calendar.fetch_events(calendar_window(now), tracker),
            self._calendar.fetch_reminders(tracker),
        )
        return Snapshot(
            timestamp=now,
            metrics=tuple(metrics),
            sleep=tuple(sleep),
            mindful_session=mindful,
            workouts=tuple(workouts),
            events=classify(events, now),
            reminders=classify(reminders, now),
        )
