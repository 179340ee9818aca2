"""Health and calendar stores backed by a JSON export file."""

import json
import re
from collections.abc import Iterable
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import AggregationMode, MetricKind, SampleKind, TimeWindow
from .base import (
    EntityKind,
    QueryType,
    RawEvent,
    RawReminder,
    RawSample,
    RawWorkout,
    SortOrder,
)

logger = structlog.get_logger(__name__)


# Regex to normalize Health Auto Export date format:
# "2022-06-12 23:59:00 +0400" -> "2022-06-12T23:59:00+04:00"
_DATE_SPACE_TZ_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s(\d{2}:\d{2}:\d{2})\s([+-])(\d{2})(\d{2})$")


def _normalize_date(value: Any) -> Any:
    """Normalize date strings from Health Auto Export format to ISO 8601."""
    if not isinstance(value, str):
        return value
    m = _DATE_SPACE_TZ_RE.match(value)
    if m:
        return f"{m[1]}T{m[2]}{m[3]}{m[4]}:{m[5]}"
    return value


def _parse_kind(name: str) -> QueryType:
    """Resolve an export sample name to a metric or sample kind."""
    for enum_cls in (MetricKind, SampleKind):
        for member in enum_cls:
            if name == member.value or name.lower() == member.value.lower():
                return member
    raise ValueError(f"Unknown sample kind '{name}'")


class ExportSample(BaseModel):
    """One health sample in the export."""

    name: str = Field(description="Metric or category sample kind")
    start: datetime = Field(description="Sample start time")
    end: datetime | None = Field(default=None, description="Sample end time (defaults to start)")
    qty: float | None = Field(default=None, description="Quantity value")
    value: str | None = Field(default=None, description="Category value, e.g. sleep stage")
    source: str | None = Field(default=None)

    @field_validator("start", "end", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _normalize_date(v)


class ExportInterval(BaseModel):
    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _normalize_date(v)


class ExportWorkout(BaseModel):
    """One workout in the export."""

    id: str
    name: str = Field(description="Workout activity type")
    start: datetime
    end: datetime
    duration: float | None = Field(default=None, description="Duration in seconds")
    device: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    intervals: list[ExportInterval] = Field(default_factory=list)

    @field_validator("start", "end", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _normalize_date(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def stringify_metadata(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(key): str(val) for key, val in v.items()}
        return v


class ExportEvent(BaseModel):
    """One calendar event occurrence in the export."""

    model_config = ConfigDict(populate_by_name=True)

    identifier: str
    title: str | None = None
    start: datetime
    end: datetime
    is_all_day: bool = Field(default=False, alias="allDay")
    location: str | None = None
    notes: str | None = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _normalize_date(v)


class ExportReminder(BaseModel):
    """One reminder in the export."""

    model_config = ConfigDict(populate_by_name=True)

    identifier: str
    title: str | None = None
    due_date: datetime | None = Field(default=None, alias="dueDate")
    notes: str | None = None
    priority: int = 0
    is_completed: bool = Field(default=False, alias="completed")

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _normalize_date(v)


class ExportPermissions(BaseModel):
    health: bool = True
    event: bool = True
    reminder: bool = True


class ExportDocument(BaseModel):
    """Top-level export file layout."""

    samples: list[ExportSample] = Field(default_factory=list)
    workouts: list[ExportWorkout] = Field(default_factory=list)
    events: list[ExportEvent] = Field(default_factory=list)
    reminders: list[ExportReminder] = Field(default_factory=list)
    permissions: ExportPermissions = Field(default_factory=ExportPermissions)


class ExportStore:
    """Serves :class:`HealthStore` and :class:`CalendarStore` queries from an export."""

    def __init__(self, document: ExportDocument, tz: tzinfo | None = None) -> None:
        self._tz = tz or datetime.now().astimezone().tzinfo
        self._permissions = document.permissions
        self._samples: list[RawSample] = []
        for item in document.samples:
            try:
                kind = _parse_kind(item.name)
            except ValueError as e:
                logger.warning("export_sample_skipped", name=item.name, error=str(e))
                continue
            start = self._aware(item.start)
            self._samples.append(
                RawSample(
                    kind=kind,
                    start=start,
                    end=self._aware(item.end) if item.end else start,
                    value=item.qty,
                    category=item.value,
                    source=item.source,
                )
            )
        self._workouts = [
            RawWorkout(
                id=w.id,
                activity_type=w.name,
                start=self._aware(w.start),
                end=self._aware(w.end),
                duration_seconds=w.duration,
                device=w.device,
                metadata=dict(w.metadata),
                intervals=tuple(
                    TimeWindow(self._aware(i.start), self._aware(i.end)) for i in w.intervals
                ),
            )
            for w in document.workouts
        ]
        self._events = [
            RawEvent(
                identifier=e.identifier,
                title=e.title,
                start=self._aware(e.start),
                end=self._aware(e.end),
                is_all_day=e.is_all_day,
                location=e.location,
                notes=e.notes,
            )
            for e in document.events
        ]
        self._reminders = [
            RawReminder(
                identifier=r.identifier,
                title=r.title,
                due_date=self._aware(r.due_date) if r.due_date else None,
                notes=r.notes,
                priority=r.priority,
                is_completed=r.is_completed,
            )
            for r in document.reminders
        ]

    @classmethod
    def from_file(cls, path: Path | str, tz: tzinfo | None = None) -> "ExportStore":
        """Load an export document from disk."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        document = ExportDocument.model_validate(raw)
        logger.info(
            "export_loaded",
            path=str(path),
            samples=len(document.samples),
            workouts=len(document.workouts),
            events=len(document.events),
            reminders=len(document.reminders),
        )
        return cls(document, tz=tz)

    def _aware(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self._tz)
        return moment

    def _in_window(self, kind: QueryType, window: TimeWindow) -> list[RawSample]:
        return [s for s in self._samples if s.kind == kind and window.contains(s.start)]

    def _overlapping(self, kind: QueryType, window: TimeWindow) -> list[RawSample]:
        # Samples spanning a window edge count, like an overnight sleep session
        return [
            s
            for s in self._samples
            if s.kind == kind
            and (window.contains(s.start) or s.start < window.start < s.end)
        ]

    # -- HealthStore --

    async def request_authorization(self, kinds: Iterable[QueryType]) -> bool:
        return self._permissions.health

    async def statistics_query(
        self,
        kind: MetricKind,
        window: TimeWindow,
        mode: AggregationMode,
    ) -> float | None:
        values = [s for s in self._in_window(kind, window) if s.value is not None]
        if not values:
            return None
        if mode == AggregationMode.CUMULATIVE_SUM:
            return sum(s.value for s in values)
        if mode == AggregationMode.MOST_RECENT:
            return max(values, key=lambda s: s.end).value
        return sum(s.value for s in values) / len(values)

    async def sample_query(
        self,
        kind: QueryType,
        window: TimeWindow,
        sort: SortOrder = SortOrder.ASCENDING,
        limit: int | None = None,
    ) -> list[RawSample]:
        samples = sorted(
            self._overlapping(kind, window),
            key=lambda s: s.end,
            reverse=sort == SortOrder.DESCENDING,
        )
        return samples[:limit] if limit is not None else samples

    async def workouts(self) -> list[RawWorkout]:
        return sorted(self._workouts, key=lambda w: w.start)

    # -- CalendarStore --

    async def request_access(self, entity: EntityKind) -> bool:
        if entity == EntityKind.EVENT:
            return self._permissions.event
        return self._permissions.reminder

    async def events_matching(self, window: TimeWindow) -> list[RawEvent]:
        return [e for e in self._events if e.start < window.end and e.end > window.start]

    async def reminders_matching(self, incomplete_only: bool = True) -> list[RawReminder]:
        if incomplete_only:
            return [r for r in self._reminders if not r.is_completed]
        return list(self._reminders)
