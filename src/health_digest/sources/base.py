"""Shared helpers and error types for source adapters."""

from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, tzinfo
from typing import TypeVar

import structlog

from ..metrics import SOURCE_QUERY_FAILURES
from ..models import TimeWindow

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


class SourceError(Exception):
    """Base class for failures inside a source adapter."""

    pass


class PermissionDeniedError(SourceError):
    """Raised when a data source authorization was declined."""

    def __init__(self, source: str) -> None:
        super().__init__(f"Access to {source} was denied")
        self.source = source


class DataUnavailableError(SourceError):
    """Raised when a query completed without any usable data."""

    pass


def local_now(tz: tzinfo | None = None) -> datetime:
    """Current time as an aware datetime in ``tz`` or the host zone."""
    if tz is not None:
        return datetime.now(tz)
    return datetime.now().astimezone()


def start_of_day(moment: datetime) -> datetime:
    """Local midnight of the day containing ``moment``."""
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def local_date(moment: datetime, reference: datetime) -> date:
    """Calendar day of ``moment`` in the zone of ``reference``."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(reference.tzinfo).date()


def today_window(now: datetime) -> TimeWindow:
    """Local midnight through ``now``."""
    return TimeWindow(start_of_day(now), now)


def trailing_days_window(now: datetime, days: int) -> TimeWindow:
    """The last ``days`` local calendar days, ending at ``now``."""
    return TimeWindow(start_of_day(now) - timedelta(days=days - 1), now)


def calendar_window(now: datetime) -> TimeWindow:
    """Start of yesterday through the end of tomorrow."""
    midnight = start_of_day(now)
    return TimeWindow(midnight - timedelta(days=1), midnight + timedelta(days=2))


async def absorb(
    source: str,
    query: Callable[[], Awaitable[T]],
    default: T,
    **context: object,
) -> T:
    """Run a source query, degrading any failure to ``default``.

    Permission and data errors are expected outcomes and are logged at debug
    level; anything else is logged as a warning and counted.
    """
    try:
        return await query()
    except PermissionDeniedError as e:
        logger.info("source_permission_denied", source=source, error=str(e), **context)
    except DataUnavailableError:
        logger.debug("source_data_unavailable", source=source, **context)
    except Exception as e:
        SOURCE_QUERY_FAILURES.labels(source=source).inc()
        logger.warning(
            "source_query_failed",
            source=source,
            error=str(e),
            error_type=type(e).__name__,
            **context,
        )
    return default


class PendingQueries:
    """Outstanding-query counter for one fetch cycle.

    Adapters call :meth:`dispatch` before issuing queries and
    :meth:`complete` as each one resolves, whether it produced data or not.
    """

    def __init__(self, on_change: Callable[[int], None] | None = None) -> None:
        self._pending = 0
        self._dispatched = 0
        self._on_change = on_change

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def dispatched(self) -> int:
        return self._dispatched

    def dispatch(self, count: int = 1) -> None:
        self._pending += count
        self._dispatched += count
        if self._on_change:
            self._on_change(self._pending)

    def complete(self) -> None:
        if self._pending <= 0:
            raise RuntimeError("complete() called with no pending queries")
        self._pending -= 1
        if self._on_change:
            self._on_change(self._pending)


@contextmanager
def tracked(tracker: PendingQueries | None) -> Iterator[None]:
    """Count one query as pending for the duration of the block."""
    if tracker:
        tracker.dispatch()
    try:
        yield
    finally:
        if tracker:
            tracker.complete()
