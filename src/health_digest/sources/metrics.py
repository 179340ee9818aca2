"""Metric source adapter: daily statistics, sleep and mindful sessions."""

import asyncio
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime

import structlog

from ..models import (
    AggregationMode,
    MetricKind,
    MetricSample,
    MetricSpec,
    MindfulSession,
    SampleKind,
    SleepEntry,
    TimeWindow,
)
from ..stores.base import HealthStore, RawSample, SortOrder
from .base import (
    DataUnavailableError,
    PendingQueries,
    PermissionDeniedError,
    absorb,
    local_date,
    tracked,
)

logger = structlog.get_logger(__name__)

# Category values that are recorded alongside sleep but are not sleep
_NON_SLEEP_CATEGORIES = {"inbed", "in_bed", "awake"}

DEFAULT_METRIC_SPECS: tuple[MetricSpec, ...] = (
    MetricSpec(MetricKind.STEP_COUNT, AggregationMode.CUMULATIVE_SUM, "count"),
    MetricSpec(MetricKind.HEART_RATE, AggregationMode.MOST_RECENT, "count/min"),
    MetricSpec(MetricKind.ACTIVE_ENERGY, AggregationMode.CUMULATIVE_SUM, "kcal"),
    MetricSpec(MetricKind.BASAL_ENERGY, AggregationMode.CUMULATIVE_SUM, "kcal"),
    MetricSpec(MetricKind.DISTANCE_WALKING_RUNNING, AggregationMode.CUMULATIVE_SUM, "m"),
    MetricSpec(MetricKind.FLIGHTS_CLIMBED, AggregationMode.CUMULATIVE_SUM, "count"),
    MetricSpec(MetricKind.STAND_TIME, AggregationMode.CUMULATIVE_SUM, "min"),
    MetricSpec(MetricKind.EXERCISE_TIME, AggregationMode.CUMULATIVE_SUM, "min"),
    MetricSpec(MetricKind.TIME_IN_DAYLIGHT, AggregationMode.CUMULATIVE_SUM, "min"),
    MetricSpec(MetricKind.BODY_MASS, AggregationMode.MOST_RECENT, "lb"),
    MetricSpec(MetricKind.BODY_FAT_PERCENTAGE, AggregationMode.MOST_RECENT, "%"),
    MetricSpec(MetricKind.BODY_MASS_INDEX, AggregationMode.MOST_RECENT, "count"),
    MetricSpec(MetricKind.LEAN_BODY_MASS, AggregationMode.MOST_RECENT, "lb"),
    MetricSpec(MetricKind.BODY_TEMPERATURE, AggregationMode.MOST_RECENT, "degF"),
    MetricSpec(MetricKind.BLOOD_PRESSURE_SYSTOLIC, AggregationMode.MOST_RECENT, "mmHg"),
    MetricSpec(MetricKind.BLOOD_PRESSURE_DIASTOLIC, AggregationMode.MOST_RECENT, "mmHg"),
    MetricSpec(MetricKind.BLOOD_OXYGEN, AggregationMode.MOST_RECENT, "%"),
    MetricSpec(MetricKind.RESPIRATORY_RATE, AggregationMode.MOST_RECENT, "count/min"),
    MetricSpec(MetricKind.RESTING_HEART_RATE, AggregationMode.MOST_RECENT, "count/min"),
    MetricSpec(MetricKind.WALKING_HEART_RATE_AVERAGE, AggregationMode.MOST_RECENT, "count/min"),
    MetricSpec(MetricKind.HEART_RATE_VARIABILITY, AggregationMode.MOST_RECENT, "ms"),
    MetricSpec(MetricKind.VO2_MAX, AggregationMode.MOST_RECENT, "mL/(kg*min)"),
)


class MetricSourceAdapter:
    """Issues one statistics query per configured metric kind.

    Queries run concurrently and are joined before the caller sees a result.
    A kind whose query fails, or that has no samples in the window, follows
    the zero-sample policy: cumulative sums report 0, every other mode is
    omitted from the result.
    """

    def __init__(self, store: HealthStore) -> None:
        self._store = store
        self._authorized: bool | None = None

    async def authorize(self, specs: Iterable[MetricSpec] = DEFAULT_METRIC_SPECS) -> bool:
        """Request read access for every metric and category kind, once."""
        if self._authorized is None:
            kinds = [spec.kind for spec in specs] + list(SampleKind)
            try:
                self._authorized = await self._store.request_authorization(kinds)
            except Exception as e:
                logger.warning("health_authorization_failed", error=str(e))
                self._authorized = False
            logger.info("health_authorization", granted=self._authorized)
        return self._authorized

    async def _require_authorization(self) -> None:
        if not await self.authorize():
            raise PermissionDeniedError("health data")

    async def fetch_metrics(
        self,
        specs: Sequence[MetricSpec],
        window: TimeWindow,
        tracker: PendingQueries | None = None,
    ) -> list[MetricSample]:
        """Fetch one sample per metric kind over ``window``.

        Args:
            specs: Metric kinds with their aggregation mode and unit.
            window: Query window, typically local midnight through now.
            tracker: Pending-query counter of the current fetch cycle.

        Returns:
            At most one MetricSample per distinct kind, in ``specs`` order.
        """
        unique: dict[MetricKind, MetricSpec] = {}
        for spec in specs:
            unique.setdefault(spec.kind, spec)

        async def fetch_all() -> list[MetricSample]:
            await self._require_authorization()
            if tracker:
                tracker.dispatch(len(unique))
            results = await asyncio.gather(
                *(self._fetch_one(spec, window, tracker) for spec in unique.values())
            )
            return [sample for sample in results if sample is not None]

        return await absorb("metrics", fetch_all, [])

    async def _fetch_one(
        self,
        spec: MetricSpec,
        window: TimeWindow,
        tracker: PendingQueries | None,
    ) -> MetricSample | None:
        async def query() -> float:
            value = await self._store.statistics_query(spec.kind, window, spec.mode)
            if value is None:
                raise DataUnavailableError(spec.kind.value)
            return float(value)

        try:
            value = await absorb("metrics", query, None, kind=spec.kind.value)
        finally:
            if tracker:
                tracker.complete()

        if value is None:
            if spec.mode != AggregationMode.CUMULATIVE_SUM:
                return None
            value = 0.0
        return MetricSample(kind=spec.kind, value=value, unit=spec.unit)

    async def fetch_sleep(
        self,
        window: TimeWindow,
        tracker: PendingQueries | None = None,
    ) -> list[SleepEntry]:
        """Sum sleep per local calendar day of each sample's end time."""

        async def query() -> list[SleepEntry]:
            await self._require_authorization()
            samples = await self._store.sample_query(SampleKind.SLEEP_ANALYSIS, window)
            return summarize_sleep(samples, reference=window.end)

        with tracked(tracker):
            return await absorb("sleep", query, [])

    async def fetch_latest_mindful_session(
        self,
        window: TimeWindow,
        tracker: PendingQueries | None = None,
    ) -> MindfulSession | None:
        """Return the most recent mindful session in ``window``."""

        async def query() -> MindfulSession | None:
            await self._require_authorization()
            samples = await self._store.sample_query(
                SampleKind.MINDFUL_SESSION,
                window,
                sort=SortOrder.DESCENDING,
                limit=1,
            )
            if not samples:
                raise DataUnavailableError("mindful session")
            latest = max(samples, key=lambda s: s.end)
            return MindfulSession(
                start=latest.start,
                end=latest.end,
                duration_minutes=(latest.end - latest.start).total_seconds() / 60,
            )

        with tracked(tracker):
            return await absorb("mindful", query, None)


def summarize_sleep(samples: Iterable[RawSample], reference: datetime) -> list[SleepEntry]:
    """Group asleep samples by local day; one entry per day, sorted by date."""
    totals: dict[date, float] = defaultdict(float)
    for sample in samples:
        category = (sample.category or "").lower()
        if category in _NON_SLEEP_CATEGORIES:
            continue
        minutes = (sample.end - sample.start).total_seconds() / 60
        if minutes <= 0:
            continue
        totals[local_date(sample.end, reference)] += minutes
    return [SleepEntry(date=day, duration_minutes=totals[day]) for day in sorted(totals)]
