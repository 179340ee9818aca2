"""Data models for the aggregated health and calendar snapshot.

Every model is a frozen dataclass with tuple-valued collections, so a
published Snapshot can be shared with readers without copying.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class MetricKind(str, Enum):
    """Health quantity kinds read from the health store."""

    STEP_COUNT = "StepCount"
    HEART_RATE = "HeartRate"
    ACTIVE_ENERGY = "ActiveEnergy"
    BASAL_ENERGY = "BasalEnergy"
    DISTANCE_WALKING_RUNNING = "DistanceWalkingRunning"
    FLIGHTS_CLIMBED = "FlightsClimbed"
    STAND_TIME = "StandTime"
    EXERCISE_TIME = "ExerciseTime"
    TIME_IN_DAYLIGHT = "TimeInDaylight"
    BODY_MASS = "BodyMass"
    BODY_FAT_PERCENTAGE = "BodyFatPercentage"
    BODY_MASS_INDEX = "BodyMassIndex"
    LEAN_BODY_MASS = "LeanBodyMass"
    BODY_TEMPERATURE = "BodyTemperature"
    BLOOD_PRESSURE_SYSTOLIC = "BloodPressureSystolic"
    BLOOD_PRESSURE_DIASTOLIC = "BloodPressureDiastolic"
    BLOOD_OXYGEN = "BloodOxygen"
    RESPIRATORY_RATE = "RespiratoryRate"
    RESTING_HEART_RATE = "RestingHeartRate"
    WALKING_HEART_RATE_AVERAGE = "WalkingHeartRateAverage"
    HEART_RATE_VARIABILITY = "HeartRateVariability"
    VO2_MAX = "VO2Max"


class SampleKind(str, Enum):
    """Category sample kinds that are not statistics-queried."""

    SLEEP_ANALYSIS = "SleepAnalysis"
    MINDFUL_SESSION = "MindfulSession"


class AggregationMode(str, Enum):
    """How a statistics query reduces the samples in its window."""

    CUMULATIVE_SUM = "cumulative_sum"
    MOST_RECENT = "most_recent"
    DISCRETE_AVERAGE = "discrete_average"


class SummaryType(str, Enum):
    """Kinds of summary the pipeline can request."""

    DAILY = "daily"
    WORKOUT = "workout"


@dataclass(frozen=True)
class MetricSpec:
    """A configured metric: its kind, aggregation mode and display unit."""

    kind: MetricKind
    mode: AggregationMode
    unit: str


@dataclass(frozen=True)
class TimeWindow:
    """Half-open time range ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} precedes start {self.start}")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class MetricSample:
    """One aggregated value per metric kind and fetch cycle."""

    kind: MetricKind
    value: float
    unit: str


@dataclass(frozen=True)
class SleepEntry:
    """Total sleep recorded for one calendar day."""

    date: date
    duration_minutes: float


@dataclass(frozen=True)
class MindfulSession:
    """The most recent mindfulness session."""

    start: datetime
    end: datetime
    duration_minutes: float


@dataclass(frozen=True)
class HeartRateStats:
    """Heart-rate statistics over a workout interval, in beats per minute."""

    min: float
    max: float
    avg: float


@dataclass(frozen=True)
class WorkoutActivity:
    """Derived statistics for one interval of a workout.

    Optional fields are None when the underlying query returned no data;
    zero is never used as a stand-in for missing.
    """

    start: datetime
    end: datetime
    calories: float | None = None
    distance_meters: float | None = None
    pace_sec_per_km: float | None = None
    heart_rate: HeartRateStats | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class Workout:
    """A recorded workout and, when computed, its interval statistics."""

    id: str
    activity_kind: str
    start: datetime
    end: datetime
    duration_seconds: float
    device: str | None = None
    metadata: tuple[tuple[str, str], ...] = ()
    activities: tuple[WorkoutActivity, ...] = ()

    @property
    def metadata_dict(self) -> dict[str, str]:
        return dict(self.metadata)


@dataclass(frozen=True)
class Event:
    """A calendar event occurrence."""

    identifier: str
    title: str
    start: datetime
    end: datetime
    is_all_day: bool = False
    location: str | None = None
    notes: str | None = None

    @property
    def dedup_key(self) -> tuple[str, datetime]:
        return (self.identifier, self.start)


@dataclass(frozen=True)
class Reminder:
    """An incomplete reminder; ``due_date`` is None when none was set."""

    identifier: str
    title: str
    due_date: datetime | None = None
    notes: str | None = None
    priority: int = 0
    is_completed: bool = False


CalendarItem = Event | Reminder


@dataclass(frozen=True)
class DayBuckets:
    """Calendar items classified by the local day of their date field."""

    yesterday: tuple[CalendarItem, ...] = ()
    today: tuple[CalendarItem, ...] = ()
    tomorrow: tuple[CalendarItem, ...] = ()

    def all_items(self) -> tuple[CalendarItem, ...]:
        return self.yesterday + self.today + self.tomorrow


@dataclass(frozen=True)
class Snapshot:
    """Fully joined aggregate of one fetch cycle.

    Superseded wholesale by the next cycle, never mutated in place.
    """

    timestamp: datetime
    metrics: tuple[MetricSample, ...] = ()
    sleep: tuple[SleepEntry, ...] = ()
    mindful_session: MindfulSession | None = None
    workouts: tuple[Workout, ...] = ()
    events: DayBuckets = field(default_factory=DayBuckets)
    reminders: DayBuckets = field(default_factory=DayBuckets)

    def metric(self, kind: MetricKind) -> MetricSample | None:
        """Return the sample for a metric kind, if one was published."""
        for sample in self.metrics:
            if sample.kind == kind:
                return sample
        return None

    def recent_workouts(self, limit: int) -> tuple[Workout, ...]:
        """Most recent workouts first, at most ``limit`` of them."""
        ordered = sorted(self.workouts, key=lambda w: (w.start, w.id), reverse=True)
        return tuple(ordered[:limit])
