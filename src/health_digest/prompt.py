"""Prompt builder: renders a Snapshot into chat messages.

Everything here is pure string formatting. Numbers use fixed conversion
factors and fixed precision so the same Snapshot always renders to the
same text.
"""

from collections.abc import Sequence
from datetime import datetime

import structlog

from .config import PromptSettings
from .models import (
    DayBuckets,
    Event,
    MindfulSession,
    Reminder,
    Snapshot,
    SummaryType,
    Workout,
    WorkoutActivity,
)
from .prompt_contract import PromptTemplate, dataset_version_for_text, load_prompt_template
from .types import ChatMessage

logger = structlog.get_logger(__name__)

METERS_PER_KM = 1000
SECONDS_PER_MINUTE = 60
MINUTES_PER_HOUR = 60

MIN_PARAGRAPHS = 2
MAX_PARAGRAPHS = 5

_SUMMARY_PROMPTS = {
    SummaryType.DAILY: "daily_summary",
    SummaryType.WORKOUT: "workout_summary",
}


def format_number(value: float, digits: int = 2) -> str:
    """Fixed-precision number with trailing zeros stripped (``2.50`` -> ``2.5``)."""
    text = f"{value:.{digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text == "-0":
        text = "0"
    return text


def format_pace(seconds_per_km: float) -> str:
    """Pace as ``M:SS /km``."""
    minutes, seconds = divmod(round(seconds_per_km), SECONDS_PER_MINUTE)
    return f"{minutes}:{seconds:02d} /km"


def format_duration(seconds: float) -> str:
    return f"{format_number(seconds / SECONDS_PER_MINUTE, 1)} min"


class PromptBuilder:
    """Renders Snapshots and packages them as a system + user message pair."""

    def __init__(self, settings: PromptSettings | None = None) -> None:
        self._settings = settings or PromptSettings()

    def _clock_text(self, moment: datetime, reference: datetime) -> str:
        if moment.tzinfo is not None and reference.tzinfo is not None:
            moment = moment.astimezone(reference.tzinfo)
        return moment.strftime("%H:%M")

    def _stamp_text(self, moment: datetime, reference: datetime) -> str:
        if moment.tzinfo is not None and reference.tzinfo is not None:
            moment = moment.astimezone(reference.tzinfo)
        return moment.strftime("%Y-%m-%d %H:%M")

    # -- sections --

    def _metrics_section(self, snapshot: Snapshot) -> list[str]:
        lines = ["Health Metrics:"]
        if not snapshot.metrics:
            lines.append("No health metrics recorded today.")
        for sample in snapshot.metrics:
            lines.append(f"{sample.kind.value}: {format_number(sample.value)} {sample.unit}")
        return lines

    def _sleep_section(self, snapshot: Snapshot) -> list[str]:
        lines = ["Sleep:"]
        if not snapshot.sleep:
            lines.append("No sleep data recorded.")
        for entry in snapshot.sleep:
            hours = entry.duration_minutes / MINUTES_PER_HOUR
            lines.append(
                f"- {entry.date.isoformat()}: {format_number(entry.duration_minutes, 1)} min "
                f"({format_number(hours, 1)} h)"
            )
        return lines

    def _mindful_section(self, snapshot: Snapshot) -> list[str]:
        session: MindfulSession | None = snapshot.mindful_session
        if session is None:
            return ["Mindful Session:", "No mindful sessions recorded."]
        return [
            "Mindful Session:",
            f"- {self._stamp_text(session.start, snapshot.timestamp)} to "
            f"{self._clock_text(session.end, snapshot.timestamp)} "
            f"({format_number(session.duration_minutes, 1)} min)",
        ]

    def _activity_line(self, index: int, activity: WorkoutActivity, reference: datetime) -> str:
        parts = [
            f"{self._clock_text(activity.start, reference)}-"
            f"{self._clock_text(activity.end, reference)}"
        ]
        if activity.calories is not None:
            parts.append(f"{format_number(activity.calories, 1)} kcal")
        if activity.distance_meters is not None:
            parts.append(f"{format_number(activity.distance_meters / METERS_PER_KM)} km")
        if activity.pace_sec_per_km is not None:
            parts.append(f"pace {format_pace(activity.pace_sec_per_km)}")
        if activity.heart_rate is not None:
            hr = activity.heart_rate
            parts.append(
                f"heart rate min {format_number(hr.min, 0)} / avg {format_number(hr.avg, 0)} "
                f"/ max {format_number(hr.max, 0)} bpm"
            )
        return f"  - Interval {index}: " + ", ".join(parts)

    def _workout_lines(self, workout: Workout, reference: datetime) -> list[str]:
        header = (
            f"- {workout.activity_kind} on {self._stamp_text(workout.start, reference)}, "
            f"{format_duration(workout.duration_seconds)}"
        )
        if workout.device:
            header += f", device {workout.device}"
        lines = [header]
        if workout.metadata:
            details = ", ".join(f"{key}={value}" for key, value in workout.metadata)
            lines.append(f"  Plan: {details}")
        for index, activity in enumerate(workout.activities, 1):
            lines.append(self._activity_line(index, activity, reference))
        return lines

    def _workouts_section(self, snapshot: Snapshot) -> list[str]:
        recent = snapshot.recent_workouts(self._settings.workout_limit)
        lines = ["Recent Workouts:"]
        if not recent:
            lines.append("No workouts recorded.")
        for workout in recent:
            lines.extend(self._workout_lines(workout, snapshot.timestamp))
        return lines

    def _event_line(self, event: Event, reference: datetime) -> str:
        if event.is_all_day:
            line = f"- All day: {event.title}"
        else:
            line = (
                f"- {self._clock_text(event.start, reference)}-"
                f"{self._clock_text(event.end, reference)}: {event.title}"
            )
        if event.location:
            line += f" @ {event.location}"
        return line

    def _reminder_line(self, reminder: Reminder, reference: datetime) -> str:
        line = f"- {reminder.title}"
        if reminder.due_date is not None:
            line += f" (due {self._clock_text(reminder.due_date, reference)})"
        if reminder.priority:
            line += f" [priority {reminder.priority}]"
        return line

    def _day_names(self) -> Sequence[str]:
        if self._settings.include_yesterday:
            return ("yesterday", "today", "tomorrow")
        return ("today", "tomorrow")

    def _bucket_sections(self, snapshot: Snapshot) -> list[list[str]]:
        sections = []
        for day in self._day_names():
            events = getattr(snapshot.events, day)
            lines = [f"Events {day.capitalize()}:"]
            if not events:
                lines.append(f"No events scheduled for {day}.")
            lines.extend(self._event_line(item, snapshot.timestamp) for item in events)
            sections.append(lines)

            reminders = getattr(snapshot.reminders, day)
            lines = [f"Reminders {day.capitalize()}:"]
            if not reminders:
                lines.append(f"No reminders due {day}.")
            lines.extend(self._reminder_line(item, snapshot.timestamp) for item in reminders)
            sections.append(lines)
        return sections

    # -- public API --

    def render(self, snapshot: Snapshot) -> str:
        """Render a Snapshot to the data text of the user message.

        Section order is fixed: metrics, sleep, mindful session, workouts,
        then events and reminders per day bucket. Empty sections carry an
        explicit placeholder line.
        """
        sections = [
            self._metrics_section(snapshot),
            self._sleep_section(snapshot),
            self._mindful_section(snapshot),
            self._workouts_section(snapshot),
            *self._bucket_sections(snapshot),
        ]
        return "\n\n".join("\n".join(lines) for lines in sections)

    def render_workouts(self, snapshot: Snapshot) -> str:
        """Workout-focused data text: recent workouts plus today's metrics."""
        sections = [self._workouts_section(snapshot), self._metrics_section(snapshot)]
        return "\n\n".join("\n".join(lines) for lines in sections)

    def system_message(self) -> ChatMessage:
        return {"role": "system", "content": load_prompt_template("system_persona").text}

    def build_messages(
        self,
        snapshot: Snapshot,
        summary_type: SummaryType = SummaryType.DAILY,
    ) -> list[ChatMessage]:
        """Package a Snapshot as the system + user message pair."""
        template: PromptTemplate = load_prompt_template(_SUMMARY_PROMPTS[summary_type])
        if summary_type == SummaryType.WORKOUT:
            data_text = self.render_workouts(snapshot)
        else:
            data_text = self.render(snapshot)

        logger.debug(
            "prompt_built",
            summary_type=summary_type.value,
            prompt_id=template.prompt_id,
            prompt_version=template.version,
            prompt_hash=template.short_hash,
            dataset_version=dataset_version_for_text(data_text),
        )
        content = template.render(
            date=snapshot.timestamp.strftime("%A, %B %d, %Y at %H:%M"),
            data_text=data_text,
        )
        return [self.system_message(), {"role": "user", "content": content}]

    def build_text_summary_messages(self, text: str, paragraphs: int = 3) -> list[ChatMessage]:
        """Messages asking for a ``paragraphs``-paragraph summary of ``text``.

        Raises:
            ValueError: If ``paragraphs`` is outside 2..5 or ``text`` is blank.
        """
        if not MIN_PARAGRAPHS <= paragraphs <= MAX_PARAGRAPHS:
            raise ValueError(
                f"Paragraph count must be between {MIN_PARAGRAPHS} and {MAX_PARAGRAPHS}, "
                f"got {paragraphs}"
            )
        if not text.strip():
            raise ValueError("Text to summarize is empty")
        template = load_prompt_template("text_summary")
        content = template.render(paragraphs=paragraphs, text=text)
        return [self.system_message(), {"role": "user", "content": content}]


def bucket_counts(buckets: DayBuckets) -> dict[str, int]:
    """Item count per day bucket, for logs."""
    return {
        "yesterday": len(buckets.yesterday),
        "today": len(buckets.today),
        "tomorrow": len(buckets.tomorrow),
    }
