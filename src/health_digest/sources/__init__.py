"""Source adapters that read the on-device stores."""

from .base import (
    DataUnavailableError,
    PendingQueries,
    PermissionDeniedError,
    SourceError,
    calendar_window,
    local_now,
    today_window,
    trailing_days_window,
)
from .calendar import CalendarSourceAdapter, classify
from .metrics import DEFAULT_METRIC_SPECS, MetricSourceAdapter, summarize_sleep
from .workouts import WorkoutSourceAdapter, compute_pace, normalize_workout_type

__all__ = [
    "CalendarSourceAdapter",
    "DEFAULT_METRIC_SPECS",
    "DataUnavailableError",
    "MetricSourceAdapter",
    "PendingQueries",
    "PermissionDeniedError",
    "SourceError",
    "WorkoutSourceAdapter",
    "calendar_window",
    "classify",
    "compute_pace",
    "local_now",
    "normalize_workout_type",
    "summarize_sleep",
    "today_window",
    "trailing_days_window",
]
