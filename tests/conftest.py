"""Pytest configuration and fixtures."""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from pathlib import Path
import asyncio
import logging
import sys

import pytest
import structlog

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from health_digest.models import AggregationMode, MetricKind, TimeWindow  # noqa: E402
from health_digest.stores.base import (  # noqa: E402
    EntityKind,
    NotificationRequest,
    RawEvent,
    RawReminder,
    RawSample,
    RawWorkout,
    SortOrder,
)

NOW = datetime(2024, 6, 12, 12, 0, tzinfo=UTC)


class FakeHealthStore:
    """In-memory HealthStore with per-kind results and optional gates.

    ``stats`` values may be a number, None, an exception instance, or a
    callable taking the query window. A kind listed in ``gates`` blocks its
    statistics query until the gate event is set.
    """

    def __init__(
        self,
        stats: dict | None = None,
        samples: dict | None = None,
        workouts: list[RawWorkout] | None = None,
        authorized: bool = True,
    ) -> None:
        self.stats = stats or {}
        self.samples = samples or {}
        self.workout_list = workouts or []
        self.authorized = authorized
        self.gates: dict[MetricKind, asyncio.Event] = {}
        self.statistics_calls: list[tuple[MetricKind, TimeWindow, AggregationMode]] = []
        self.sample_calls: list[tuple] = []
        self.authorization_calls = 0

    async def request_authorization(self, kinds: Iterable) -> bool:
        self.authorization_calls += 1
        return self.authorized

    async def statistics_query(
        self,
        kind: MetricKind,
        window: TimeWindow,
        mode: AggregationMode,
    ) -> float | None:
        self.statistics_calls.append((kind, window, mode))
        gate = self.gates.get(kind)
        if gate is not None:
            await gate.wait()
        value = self.stats.get(kind)
        if callable(value):
            value = value(window)
        if isinstance(value, Exception):
            raise value
        return value

    async def sample_query(
        self,
        kind,
        window: TimeWindow,
        sort: SortOrder = SortOrder.ASCENDING,
        limit: int | None = None,
    ) -> list[RawSample]:
        self.sample_calls.append((kind, window, sort, limit))
        value = self.samples.get(kind, [])
        if isinstance(value, Exception):
            raise value
        matched = sorted(
            (s for s in value if s.start < window.end and s.end >= window.start),
            key=lambda s: s.end,
            reverse=sort == SortOrder.DESCENDING,
        )
        return matched[:limit] if limit is not None else matched

    async def workouts(self) -> list[RawWorkout]:
        return list(self.workout_list)


class FakeCalendarStore:
    """In-memory CalendarStore with separate event and reminder grants."""

    def __init__(
        self,
        events: list[RawEvent] | None = None,
        reminders: list[RawReminder] | None = None,
        event_access: bool = True,
        reminder_access: bool = True,
    ) -> None:
        self.events = events or []
        self.reminders = reminders or []
        self.access = {EntityKind.EVENT: event_access, EntityKind.REMINDER: reminder_access}
        self.event_windows: list[TimeWindow] = []

    async def request_access(self, entity: EntityKind) -> bool:
        return self.access[entity]

    async def events_matching(self, window: TimeWindow) -> list[RawEvent]:
        self.event_windows.append(window)
        return list(self.events)

    async def reminders_matching(self, incomplete_only: bool = True) -> list[RawReminder]:
        if incomplete_only:
            return [r for r in self.reminders if not r.is_completed]
        return list(self.reminders)


class FakeNotificationCenter:
    """Records notification requests."""

    def __init__(self, authorized: bool = True, fail_add: bool = False) -> None:
        self.authorized = authorized
        self.fail_add = fail_add
        self.added: list[NotificationRequest] = []
        self.removed: list[list[str]] = []

    async def request_authorization(self) -> bool:
        if isinstance(self.authorized, Exception):
            raise self.authorized
        return self.authorized

    async def add(self, request: NotificationRequest) -> None:
        if self.fail_add:
            raise RuntimeError("center unavailable")
        self.added = [r for r in self.added if r.identifier != request.identifier]
        self.added.append(request)

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        ids = list(identifiers)
        self.removed.append(ids)
        self.added = [r for r in self.added if r.identifier not in ids]

    async def pending(self) -> list[NotificationRequest]:
        return list(self.added)


def make_clock(moment: datetime = NOW) -> Callable[[], datetime]:
    return lambda: moment


@pytest.fixture
def now():
    """Fixed reference time: 2024-06-12 12:00 UTC."""
    return NOW


@pytest.fixture
def health_store():
    """Empty fake health store."""
    return FakeHealthStore()


@pytest.fixture
def calendar_store():
    """Empty fake calendar store."""
    return FakeCalendarStore()


@pytest.fixture
def notification_center():
    """Recording fake notification center."""
    return FakeNotificationCenter()


@pytest.fixture
def sample_running_workout():
    """A two-interval outdoor run."""
    start = NOW - timedelta(hours=4)
    return RawWorkout(
        id="run-1",
        activity_type="HKWorkoutActivityTypeRunning",
        start=start,
        end=start + timedelta(minutes=30),
        duration_seconds=1800.0,
        device="Apple Watch",
        metadata={"plan": "intervals"},
        intervals=(
            TimeWindow(start, start + timedelta(minutes=15)),
            TimeWindow(start + timedelta(minutes=15), start + timedelta(minutes=30)),
        ),
    )


@pytest.fixture
def sample_export():
    """A small export document covering every section."""
    return {
        "samples": [
            {"name": "StepCount", "start": "2024-06-12 08:00:00 +0000", "qty": 4000},
            {"name": "StepCount", "start": "2024-06-12 09:00:00 +0000", "qty": 1500},
            {"name": "HeartRate", "start": "2024-06-12 09:00:00 +0000", "qty": 64},
            {"name": "HeartRate", "start": "2024-06-12 10:00:00 +0000", "qty": 71},
            {
                "name": "SleepAnalysis",
                "start": "2024-06-11T23:00:00+00:00",
                "end": "2024-06-12T06:30:00+00:00",
                "value": "asleep",
            },
            {
                "name": "SleepAnalysis",
                "start": "2024-06-11T22:30:00+00:00",
                "end": "2024-06-11T23:00:00+00:00",
                "value": "inBed",
            },
            {"name": "DietaryWater", "start": "2024-06-12T08:00:00+00:00", "qty": 1},
        ],
        "workouts": [
            {
                "id": "w1",
                "name": "HKWorkoutActivityTypeWalking",
                "start": "2024-06-12T07:00:00+00:00",
                "end": "2024-06-12T07:30:00+00:00",
                "duration": 1800,
                "metadata": {"indoor": False},
            }
        ],
        "events": [
            {
                "identifier": "e1",
                "title": "Standup",
                "start": "2024-06-12T09:00:00+00:00",
                "end": "2024-06-12T09:15:00+00:00",
            },
            {
                "identifier": "e2",
                "title": "Dentist",
                "start": "2024-06-13T15:00:00+00:00",
                "end": "2024-06-13T16:00:00+00:00",
                "location": "Main St",
            },
        ],
        "reminders": [
            {"identifier": "r1", "title": "Buy milk", "dueDate": "2024-06-12T18:00:00+00:00"},
            {"identifier": "r2", "title": "Someday"},
            {"identifier": "r3", "title": "Done", "completed": True},
        ],
    }


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    """Drop log output so it never mixes with captured CLI output."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL))
    yield
    structlog.reset_defaults()
