"""Calendar and reminder source adapter."""

from collections.abc import Iterable
from datetime import date, datetime, timedelta

import structlog

from ..models import CalendarItem, DayBuckets, Event, Reminder, TimeWindow
from ..stores.base import CalendarStore, EntityKind
from .base import PendingQueries, PermissionDeniedError, absorb, local_date, tracked

logger = structlog.get_logger(__name__)

UNTITLED = "(No Title)"


class CalendarSourceAdapter:
    """Fetches events and incomplete reminders after access is granted.

    Events and reminders are separate grants; denying one leaves the
    other source working.
    """

    def __init__(self, store: CalendarStore) -> None:
        self._store = store
        self._access: dict[EntityKind, bool] = {}

    async def request_access(self, entity: EntityKind) -> bool:
        if entity not in self._access:
            try:
                granted = await self._store.request_access(entity)
            except Exception as e:
                logger.warning("calendar_access_failed", entity=entity.value, error=str(e))
                granted = False
            self._access[entity] = granted
            logger.info("calendar_access", entity=entity.value, granted=granted)
        return self._access[entity]

    async def fetch_events(
        self,
        window: TimeWindow,
        tracker: PendingQueries | None = None,
    ) -> list[Event]:
        """Events intersecting ``window``, deduplicated by (identifier, start).

        Recurring occurrences share an identifier but differ by start, so both
        are kept. The result is sorted ascending by start.
        """

        async def query() -> list[Event]:
            if not await self.request_access(EntityKind.EVENT):
                raise PermissionDeniedError("calendar events")
            raw_events = await self._store.events_matching(window)
            seen: set[tuple[str, datetime]] = set()
            events: list[Event] = []
            for raw in raw_events:
                event = Event(
                    identifier=raw.identifier,
                    title=raw.title or UNTITLED,
                    start=raw.start,
                    end=raw.end,
                    is_all_day=raw.is_all_day,
                    location=raw.location,
                    notes=raw.notes,
                )
                if event.dedup_key in seen:
                    continue
                seen.add(event.dedup_key)
                events.append(event)
            events.sort(key=lambda e: (e.start, e.identifier))
            return events

        with tracked(tracker):
            return await absorb("events", query, [])

    async def fetch_reminders(self, tracker: PendingQueries | None = None) -> list[Reminder]:
        """All incomplete reminders, wherever they are due."""

        async def query() -> list[Reminder]:
            if not await self.request_access(EntityKind.REMINDER):
                raise PermissionDeniedError("reminders")
            raw_reminders = await self._store.reminders_matching(incomplete_only=True)
            return [
                Reminder(
                    identifier=raw.identifier,
                    title=raw.title or UNTITLED,
                    due_date=raw.due_date,
                    notes=raw.notes,
                    priority=raw.priority,
                    is_completed=raw.is_completed,
                )
                for raw in raw_reminders
                if not raw.is_completed
            ]

        with tracked(tracker):
            return await absorb("reminders", query, [])


def _item_moment(item: CalendarItem) -> datetime | None:
    if isinstance(item, Event):
        return item.start
    return item.due_date


def classify(items: Iterable[CalendarItem], now: datetime) -> DayBuckets:
    """Bucket items into yesterday/today/tomorrow by the local day of their date.

    Events use their start, reminders their due date. Items without a date or
    outside the three days land in no bucket.
    """
    today = now.date()
    days: dict[date, list[CalendarItem]] = {
        today - timedelta(days=1): [],
        today: [],
        today + timedelta(days=1): [],
    }
    for item in items:
        moment = _item_moment(item)
        if moment is None:
            continue
        bucket = days.get(local_date(moment, now))
        if bucket is not None:
            bucket.append(item)

    yesterday, current, tomorrow = (tuple(days[day]) for day in sorted(days))
    return DayBuckets(yesterday=yesterday, today=current, tomorrow=tomorrow)
