"""Workout source adapter: workout history and per-interval statistics."""

import asyncio
from collections.abc import Sequence
from statistics import fmean

import structlog

from ..models import (
    AggregationMode,
    HeartRateStats,
    MetricKind,
    TimeWindow,
    Workout,
    WorkoutActivity,
)
from ..stores.base import HealthStore, RawWorkout
from .base import (
    DataUnavailableError,
    PendingQueries,
    PermissionDeniedError,
    absorb,
    tracked,
)

logger = structlog.get_logger(__name__)

METERS_PER_KM = 1000.0

# Quantity kinds read for each workout interval
_INTERVAL_KINDS = (
    MetricKind.ACTIVE_ENERGY,
    MetricKind.DISTANCE_WALKING_RUNNING,
    MetricKind.HEART_RATE,
)

# Activity type names as exported, mapped to their short form
_WORKOUT_TYPE_NAMES = {
    "traditionalstrengthtraining": "strength_training",
    "functionalstrengthtraining": "functional_training",
    "highintensityintervaltraining": "hiit",
    "stairclimbing": "stair_climbing",
    "coretraining": "core_training",
    "mixedcardio": "mixed_cardio",
    "crosstraining": "cross_training",
    "mindandbody": "mind_and_body",
    "outdoorrun": "running",
    "indoorrun": "running",
    "outdoorwalk": "walking",
    "indoorwalk": "walking",
    "outdoorcycle": "cycling",
    "indoorcycle": "cycling",
    "poolswim": "swimming",
    "openwaterswim": "swimming",
}


def normalize_workout_type(workout_name: str) -> str:
    """Normalize workout type to a consistent format."""
    name = workout_name.strip().lower().replace(" ", "")
    for prefix in ("hkworkoutactivitytype", "workout_"):
        if name.startswith(prefix):
            name = name[len(prefix) :]
    name = _WORKOUT_TYPE_NAMES.get(name, name)
    return name or "other"


def compute_pace(duration_seconds: float, distance_meters: float | None) -> float | None:
    """Seconds per kilometre, or None when either operand is missing or not positive."""
    if distance_meters is None or distance_meters <= 0 or duration_seconds <= 0:
        return None
    return duration_seconds / (distance_meters / METERS_PER_KM)


def heart_rate_stats(values: Sequence[float]) -> HeartRateStats | None:
    """min/max/mean of the given readings; None for an empty set."""
    if not values:
        return None
    return HeartRateStats(min=min(values), max=max(values), avg=fmean(values))


class WorkoutSourceAdapter:
    """Lists workouts and derives interval statistics via nested sub-queries."""

    def __init__(self, store: HealthStore) -> None:
        self._store = store
        self._authorized: bool | None = None

    async def authorize(self) -> bool:
        """Request read access to workouts and their interval kinds, once."""
        if self._authorized is None:
            try:
                self._authorized = await self._store.request_authorization(_INTERVAL_KINDS)
            except Exception as e:
                logger.warning("workout_authorization_failed", error=str(e))
                self._authorized = False
            logger.info("workout_authorization", granted=self._authorized)
        return self._authorized

    async def list_workouts(self, tracker: PendingQueries | None = None) -> list[Workout]:
        """Full workout history, sorted ascending by start time.

        Returns an empty list when access is denied or the query fails.
        """
        raw = await self._list_raw(tracker)
        return [self._to_workout(item) for item in raw]

    async def list_workouts_with_activities(
        self,
        detail_limit: int,
        tracker: PendingQueries | None = None,
    ) -> list[Workout]:
        """Workout history where the ``detail_limit`` most recent carry activities."""
        raw = await self._list_raw(tracker)
        if detail_limit <= 0 or not raw:
            return [self._to_workout(item) for item in raw]

        recent = sorted(raw, key=lambda w: (w.start, w.id), reverse=True)[:detail_limit]
        recent_ids = {item.id for item in recent}
        details = await asyncio.gather(*(self.activity_metrics(item, tracker) for item in recent))
        by_id = dict(zip((item.id for item in recent), details, strict=True))

        return [
            self._to_workout(item, by_id[item.id] if item.id in recent_ids else ())
            for item in raw
        ]

    async def _list_raw(self, tracker: PendingQueries | None) -> list[RawWorkout]:
        async def query() -> list[RawWorkout]:
            if not await self.authorize():
                raise PermissionDeniedError("workouts")
            return sorted(await self._store.workouts(), key=lambda w: w.start)

        with tracked(tracker):
            return await absorb("workouts", query, [])

    @staticmethod
    def _to_workout(raw: RawWorkout, activities: Sequence[WorkoutActivity] = ()) -> Workout:
        duration = raw.duration_seconds
        if duration is None:
            duration = (raw.end - raw.start).total_seconds()
        return Workout(
            id=raw.id,
            activity_kind=normalize_workout_type(raw.activity_type),
            start=raw.start,
            end=raw.end,
            duration_seconds=duration,
            device=raw.device,
            metadata=tuple(sorted(raw.metadata.items())),
            activities=tuple(activities),
        )

    async def activity_metrics(
        self,
        workout: RawWorkout,
        tracker: PendingQueries | None = None,
    ) -> list[WorkoutActivity]:
        """Statistics for every interval of ``workout``.

        A workout without recorded intervals is treated as one interval
        spanning the whole workout. Each interval's sub-queries run
        concurrently; a failed sub-query only blanks its own field.
        """
        intervals = workout.intervals or (TimeWindow(workout.start, workout.end),)
        activities = await asyncio.gather(
            *(self._interval_metrics(workout.id, interval, tracker) for interval in intervals)
        )
        logger.debug("workout_activities_computed", workout_id=workout.id, intervals=len(activities))
        return list(activities)

    async def _interval_metrics(
        self,
        workout_id: str,
        interval: TimeWindow,
        tracker: PendingQueries | None,
    ) -> WorkoutActivity:
        calories, distance, heart_rate = await asyncio.gather(
            self._sum(MetricKind.ACTIVE_ENERGY, interval, workout_id, tracker),
            self._sum(MetricKind.DISTANCE_WALKING_RUNNING, interval, workout_id, tracker),
            self._heart_rate(interval, workout_id, tracker),
        )
        return WorkoutActivity(
            start=interval.start,
            end=interval.end,
            calories=calories,
            distance_meters=distance,
            pace_sec_per_km=compute_pace(interval.duration_seconds, distance),
            heart_rate=heart_rate,
        )

    async def _sum(
        self,
        kind: MetricKind,
        interval: TimeWindow,
        workout_id: str,
        tracker: PendingQueries | None,
    ) -> float | None:
        async def query() -> float | None:
            value = await self._store.statistics_query(
                kind, interval, AggregationMode.CUMULATIVE_SUM
            )
            return float(value) if value is not None else None

        with tracked(tracker):
            return await absorb(
                "workout_activity", query, None, kind=kind.value, workout_id=workout_id
            )

    async def _heart_rate(
        self,
        interval: TimeWindow,
        workout_id: str,
        tracker: PendingQueries | None,
    ) -> HeartRateStats | None:
        async def query() -> HeartRateStats | None:
            samples = await self._store.sample_query(MetricKind.HEART_RATE, interval)
            # Stores may match on overlap; keep readings timestamped inside the interval
            values = [
                s.value for s in samples if s.value is not None and interval.contains(s.start)
            ]
            stats = heart_rate_stats(values)
            if stats is None:
                raise DataUnavailableError("heart rate")
            return stats

        with tracked(tracker):
            return await absorb("workout_heart_rate", query, None, workout_id=workout_id)
