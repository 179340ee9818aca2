"""Collaborator interfaces for the on-device data stores.

The pipeline only talks to these protocols. On a device they wrap the
platform frameworks; off-device :mod:`health_digest.stores.export` serves
them from a JSON export file.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from ..models import AggregationMode, MetricKind, SampleKind, TimeWindow

QueryType = MetricKind | SampleKind


class SortOrder(str, Enum):
    """Sample query ordering by sample end time."""

    ASCENDING = "ascending"
    DESCENDING = "descending"


class EntityKind(str, Enum):
    """Calendar store entity kinds that need separate access grants."""

    EVENT = "event"
    REMINDER = "reminder"


@dataclass(frozen=True)
class RawSample:
    """A raw health store sample."""

    kind: QueryType
    start: datetime
    end: datetime
    value: float | None = None
    category: str | None = None
    source: str | None = None


@dataclass(frozen=True)
class RawWorkout:
    """A raw workout record with its recorded activity intervals."""

    id: str
    activity_type: str
    start: datetime
    end: datetime
    duration_seconds: float | None = None
    device: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    intervals: tuple[TimeWindow, ...] = ()


@dataclass(frozen=True)
class RawEvent:
    """A raw calendar event occurrence."""

    identifier: str
    title: str | None
    start: datetime
    end: datetime
    is_all_day: bool = False
    location: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RawReminder:
    """A raw reminder."""

    identifier: str
    title: str | None
    due_date: datetime | None = None
    notes: str | None = None
    priority: int = 0
    is_completed: bool = False


@runtime_checkable
class HealthStore(Protocol):
    """Read-only access to the health data store."""

    async def request_authorization(self, kinds: Iterable[QueryType]) -> bool: ...

    async def statistics_query(
        self,
        kind: MetricKind,
        window: TimeWindow,
        mode: AggregationMode,
    ) -> float | None: ...

    async def sample_query(
        self,
        kind: QueryType,
        window: TimeWindow,
        sort: SortOrder = SortOrder.ASCENDING,
        limit: int | None = None,
    ) -> list[RawSample]: ...

    async def workouts(self) -> list[RawWorkout]: ...


@runtime_checkable
class CalendarStore(Protocol):
    """Read-only access to the calendar and reminders store."""

    async def request_access(self, entity: EntityKind) -> bool: ...

    async def events_matching(self, window: TimeWindow) -> list[RawEvent]: ...

    async def reminders_matching(self, incomplete_only: bool = True) -> list[RawReminder]: ...


class AuthorizationStatus(str, Enum):
    """Notification authorization state."""

    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    DENIED = "denied"


@dataclass(frozen=True)
class CalendarTrigger:
    """Fire at a wall-clock time, optionally every day."""

    hour: int
    minute: int
    repeats: bool = True


@dataclass(frozen=True)
class IntervalTrigger:
    """Fire once after a delay."""

    seconds: float
    repeats: bool = False


@dataclass(frozen=True)
class NotificationRequest:
    """A local notification to schedule."""

    identifier: str
    title: str
    body: str
    trigger: CalendarTrigger | IntervalTrigger
    sound: bool = True


@runtime_checkable
class NotificationCenter(Protocol):
    """Local notification scheduling service."""

    async def request_authorization(self) -> bool: ...

    async def add(self, request: NotificationRequest) -> None: ...

    async def remove_pending(self, identifiers: Iterable[str]) -> None: ...

    async def pending(self) -> list[NotificationRequest]: ...
