"""Tests for prompt rendering and prompt template contracts."""

from datetime import date, timedelta

import pytest
from conftest import NOW

from health_digest.config import PromptSettings
from health_digest.models import (
    DayBuckets,
    Event,
    HeartRateStats,
    MetricKind,
    MetricSample,
    MindfulSession,
    Reminder,
    SleepEntry,
    Snapshot,
    SummaryType,
    Workout,
    WorkoutActivity,
)
from health_digest.prompt import PromptBuilder, format_number, format_pace
from health_digest.prompt_contract import (
    PROMPT_SPECS,
    dataset_version_for_text,
    load_prompt_template,
)


@pytest.fixture
def builder():
    return PromptBuilder(PromptSettings())


@pytest.fixture
def minimal_snapshot():
    """Only a zero step count; every other section empty."""
    return Snapshot(
        timestamp=NOW,
        metrics=(MetricSample(kind=MetricKind.STEP_COUNT, value=0.0, unit="count"),),
    )


def make_workout(index: int, activities=()) -> Workout:
    start = NOW - timedelta(days=index)
    return Workout(
        id=f"w{index}",
        activity_kind="running",
        start=start,
        end=start + timedelta(minutes=30),
        duration_seconds=1800.0,
        activities=tuple(activities),
    )


@pytest.fixture
def full_snapshot():
    activity = WorkoutActivity(
        start=NOW - timedelta(hours=3),
        end=NOW - timedelta(hours=2, minutes=30),
        calories=312.46,
        distance_meters=5000.0,
        pace_sec_per_km=360.0,
        heart_rate=HeartRateStats(min=118.0, max=171.0, avg=149.4),
    )
    return Snapshot(
        timestamp=NOW,
        metrics=(
            MetricSample(kind=MetricKind.STEP_COUNT, value=8421.0, unit="count"),
            MetricSample(kind=MetricKind.BODY_MASS, value=171.25, unit="lb"),
        ),
        sleep=(SleepEntry(date=date(2024, 6, 12), duration_minutes=450.0),),
        mindful_session=MindfulSession(
            start=NOW - timedelta(hours=5),
            end=NOW - timedelta(hours=4, minutes=50),
            duration_minutes=10.0,
        ),
        workouts=(make_workout(0, [activity]),),
        events=DayBuckets(
            today=(
                Event(
                    identifier="e1",
                    title="Standup",
                    start=NOW + timedelta(hours=1),
                    end=NOW + timedelta(hours=1, minutes=15),
                    location="Room 4",
                ),
            ),
            tomorrow=(
                Event(
                    identifier="e2",
                    title="Offsite",
                    start=NOW + timedelta(days=1),
                    end=NOW + timedelta(days=2),
                    is_all_day=True,
                ),
            ),
        ),
        reminders=DayBuckets(
            today=(Reminder(identifier="r1", title="Buy milk", due_date=NOW, priority=1),)
        ),
    )


class TestFormatting:
    """Tests for number formatting helpers."""

    def test_format_number(self):
        """Fixed precision with trailing zeros stripped."""
        assert format_number(0.0) == "0"
        assert format_number(2.5) == "2.5"
        assert format_number(171.256) == "171.26"
        assert format_number(-0.001) == "0"
        assert format_number(149.4, 0) == "149"

    def test_format_pace(self):
        """Pace renders as minutes and zero-padded seconds."""
        assert format_pace(360.0) == "6:00 /km"
        assert format_pace(365.4) == "6:05 /km"
        assert format_pace(359.6) == "6:00 /km"


class TestRender:
    """Tests for PromptBuilder.render."""

    def test_minimal_snapshot_placeholders(self, builder, minimal_snapshot):
        """Empty sections render explicit placeholders."""
        text = builder.render(minimal_snapshot)
        lines = text.splitlines()

        assert "StepCount: 0 count" in lines
        assert "No events scheduled for today." in lines
        assert "No events scheduled for tomorrow." in lines
        assert "No sleep data recorded." in lines
        assert "No mindful sessions recorded." in lines
        assert "No workouts recorded." in lines
        assert "No reminders due today." in lines

    def test_render_is_idempotent(self, builder, full_snapshot):
        """Rendering the same snapshot twice yields identical text."""
        assert builder.render(full_snapshot) == builder.render(full_snapshot)

    def test_section_order(self, builder, full_snapshot):
        """Sections follow the fixed order."""
        text = builder.render(full_snapshot)
        headers = [
            "Health Metrics:",
            "Sleep:",
            "Mindful Session:",
            "Recent Workouts:",
            "Events Yesterday:",
            "Reminders Yesterday:",
            "Events Today:",
            "Reminders Today:",
            "Events Tomorrow:",
            "Reminders Tomorrow:",
        ]
        positions = [text.index(header) for header in headers]
        assert positions == sorted(positions)

    def test_without_yesterday(self, full_snapshot):
        """The yesterday bucket can be left out."""
        text = PromptBuilder(PromptSettings(include_yesterday=False)).render(full_snapshot)

        assert "Yesterday" not in text
        assert text.index("Events Today:") < text.index("Events Tomorrow:")

    def test_full_snapshot_lines(self, builder, full_snapshot):
        """Values use fixed conversions and precision."""
        lines = builder.render(full_snapshot).splitlines()

        assert "StepCount: 8421 count" in lines
        assert "BodyMass: 171.25 lb" in lines
        assert "- 2024-06-12: 450 min (7.5 h)" in lines
        assert "- 2024-06-12 07:00 to 07:10 (10 min)" in lines
        assert "- running on 2024-06-12 12:00, 30 min" in lines
        assert (
            "  - Interval 1: 09:00-09:30, 312.5 kcal, 5 km, pace 6:00 /km, "
            "heart rate min 118 / avg 149 / max 171 bpm"
        ) in lines
        assert "- 13:00-13:15: Standup @ Room 4" in lines
        assert "- All day: Offsite" in lines
        assert "- Buy milk (due 12:00) [priority 1]" in lines

    def test_workout_limit(self, minimal_snapshot):
        """Only the N most recent workouts are rendered."""
        snapshot = Snapshot(
            timestamp=NOW,
            workouts=tuple(make_workout(i) for i in range(7)),
        )
        text = PromptBuilder(PromptSettings(workout_limit=3)).render(snapshot)

        assert text.count("- running on") == 3
        assert "2024-06-12 12:00" in text
        assert "2024-06-09" not in text


class TestMessages:
    """Tests for chat message packaging."""

    def test_daily_messages(self, builder, minimal_snapshot):
        """Daily summary is a system + user pair with the persona wording."""
        messages = builder.build_messages(minimal_snapshot)

        assert [m["role"] for m in messages] == ["system", "user"]
        assert "Use 3 or 4 emojis at most." in messages[0]["content"]
        assert "headers" in messages[0]["content"]
        user = messages[1]["content"]
        assert user.startswith("Generate a personalized daily summary")
        assert "Date: Wednesday, June 12, 2024 at 12:00" in user
        assert "StepCount: 0 count" in user
        assert user.rstrip().endswith(
            "5. A PS with a practical tip combining health and daily tasks"
        )

    def test_workout_messages(self, builder, full_snapshot):
        """Workout summary focuses on recent workouts."""
        messages = builder.build_messages(full_snapshot, SummaryType.WORKOUT)

        user = messages[1]["content"]
        assert "Recent Workouts:" in user
        assert "Events Today:" not in user

    def test_text_summary_messages(self, builder):
        """Free text is wrapped in the summarize instruction."""
        messages = builder.build_text_summary_messages("Some {braced} text.", paragraphs=2)

        assert messages[1]["content"] == (
            "Summarize the following text in 2 concise paragraphs, focusing on the main "
            "points and clarity.\n\nSome {braced} text."
        )

    @pytest.mark.parametrize("paragraphs", [1, 6])
    def test_text_summary_paragraph_range(self, builder, paragraphs):
        """Paragraph count must be 2..5."""
        with pytest.raises(ValueError, match="Paragraph count must be between 2 and 5"):
            builder.build_text_summary_messages("text", paragraphs=paragraphs)


class TestPromptContract:
    """Tests for versioned prompt templates."""

    @pytest.mark.parametrize("prompt_id", sorted(PROMPT_SPECS))
    def test_templates_load(self, prompt_id):
        """Every template loads with its placeholders and a digest."""
        template = load_prompt_template(prompt_id)

        assert template.version == "v1"
        assert len(template.sha256) == 64
        assert len(template.short_hash) == 12

    def test_dataset_version_ignores_trailing_whitespace(self):
        """Dataset version is stable across trailing whitespace."""
        assert dataset_version_for_text("a\nb") == dataset_version_for_text("a  \nb\n")
        assert dataset_version_for_text("a").startswith("sha256:")
