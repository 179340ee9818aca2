"""Data store collaborators."""

from .base import (
    AuthorizationStatus,
    CalendarStore,
    CalendarTrigger,
    EntityKind,
    HealthStore,
    IntervalTrigger,
    NotificationCenter,
    NotificationRequest,
    RawEvent,
    RawReminder,
    RawSample,
    RawWorkout,
    SortOrder,
)
from .export import ExportDocument, ExportStore

__all__ = [
    "AuthorizationStatus",
    "CalendarStore",
    "CalendarTrigger",
    "EntityKind",
    "ExportDocument",
    "ExportStore",
    "HealthStore",
    "IntervalTrigger",
    "NotificationCenter",
    "NotificationRequest",
    "RawEvent",
    "RawReminder",
    "RawSample",
    "RawWorkout",
    "SortOrder",
]
