"""CLI tools for snapshots, summaries, text summaries and reminders."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .aggregator import Aggregator
from .chat import ChatClient, ChatError
from .config import Settings, get_settings
from .logging import setup_logging
from .models import SummaryType
from .notifications import ConsoleNotificationCenter, NotificationScheduler
from .prompt import MAX_PARAGRAPHS, MIN_PARAGRAPHS, PromptBuilder
from .service import SummaryService
from .sources.base import local_now
from .sources.calendar import CalendarSourceAdapter
from .sources.metrics import MetricSourceAdapter
from .sources.workouts import WorkoutSourceAdapter
from .stores.base import AuthorizationStatus
from .stores.export import ExportStore
from .tracing import setup_tracing


def build_service(settings: Settings, export_path: Path) -> SummaryService:
    """Wire the pipeline against an export file."""
    tz = settings.app.tzinfo()
    store = ExportStore.from_file(export_path, tz=tz)
    aggregator = Aggregator(
        metrics=MetricSourceAdapter(store),
        workouts=WorkoutSourceAdapter(store),
        calendar=CalendarSourceAdapter(store),
        settings=settings.sources,
        clock=lambda: local_now(tz),
    )
    notifier = NotificationScheduler(ConsoleNotificationCenter(), settings.notifications)
    return SummaryService(
        aggregator=aggregator,
        builder=PromptBuilder(settings.prompt),
        chat=ChatClient(settings.chat),
        notifier=notifier,
    )


def _setup() -> Settings:
    settings = get_settings()
    setup_logging(settings.app)
    setup_tracing(settings.tracing)
    return settings


def _export_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--export",
        type=Path,
        required=True,
        help="Path to the JSON health/calendar export",
    )


async def _print_snapshot(export_path: Path) -> None:
    settings = _setup()
    service = build_service(settings, export_path)
    snapshot = await service.snapshot()
    print(PromptBuilder(settings.prompt).render(snapshot))


def snapshot(argv: list[str] | None = None) -> None:
    """CLI entry point printing the rendered data text of a fresh snapshot.

    Usage:
        health-digest-snapshot --export export.json
    """
    parser = argparse.ArgumentParser(description="Render the current data snapshot")
    _export_argument(parser)
    args = parser.parse_args(argv)
    asyncio.run(_print_snapshot(args.export))


async def _run_summary(export_path: Path, summary_type: SummaryType, dry_run: bool) -> int:
    settings = _setup()
    service = build_service(settings, export_path)

    if dry_run:
        messages = await service.messages(summary_type)
        print(json.dumps(messages, indent=2, ensure_ascii=False))
        return 0

    try:
        summary = await service.generate(summary_type)
    except ChatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(summary)
    return 0


def summary(argv: list[str] | None = None) -> None:
    """CLI entry point generating a daily or workout summary.

    Usage:
        health-digest-summary --export export.json [--type workout] [--dry-run]
    """
    parser = argparse.ArgumentParser(description="Generate a summary from a data snapshot")
    _export_argument(parser)
    parser.add_argument(
        "--type",
        choices=[t.value for t in SummaryType],
        default=SummaryType.DAILY.value,
        help="Summary type (default: daily)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the chat messages instead of calling the API",
    )
    args = parser.parse_args(argv)
    sys.exit(asyncio.run(_run_summary(args.export, SummaryType(args.type), args.dry_run)))


async def _summarize(text: str, paragraphs: int) -> int:
    settings = _setup()
    builder = PromptBuilder(settings.prompt)
    chat = ChatClient(settings.chat)
    try:
        result = await chat.send(builder.build_text_summary_messages(text, paragraphs))
    except ChatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(result)
    return 0


def summarize(argv: list[str] | None = None) -> None:
    """CLI entry point summarizing free text.

    Usage:
        health-digest-summarize [--paragraphs 3] [FILE]
    """
    parser = argparse.ArgumentParser(description="Summarize text in a few paragraphs")
    parser.add_argument(
        "file",
        nargs="?",
        type=Path,
        help="Text file to summarize (default: stdin)",
    )
    parser.add_argument(
        "--paragraphs",
        type=int,
        default=3,
        help=f"Paragraph count, {MIN_PARAGRAPHS}-{MAX_PARAGRAPHS} (default: 3)",
    )
    args = parser.parse_args(argv)

    if not MIN_PARAGRAPHS <= args.paragraphs <= MAX_PARAGRAPHS:
        print(
            f"Error: paragraphs must be between {MIN_PARAGRAPHS} and {MAX_PARAGRAPHS}",
            file=sys.stderr,
        )
        sys.exit(1)

    text = args.file.read_text(encoding="utf-8") if args.file else sys.stdin.read()
    if not text.strip():
        print("Error: no text to summarize", file=sys.stderr)
        sys.exit(1)

    sys.exit(asyncio.run(_summarize(text, args.paragraphs)))


async def _schedule_reminder() -> int:
    settings = _setup()
    scheduler = NotificationScheduler(ConsoleNotificationCenter(), settings.notifications)
    status = await scheduler.request_authorization()
    if status != AuthorizationStatus.AUTHORIZED:
        print("Notifications are not authorized", file=sys.stderr)
        return 1
    request = await scheduler.schedule_daily_reminder()
    if request is None:
        print("Daily reminder was not scheduled", file=sys.stderr)
        return 1
    hour, minute = settings.notifications.daily_hour, settings.notifications.daily_minute
    print(f"Daily reminder scheduled at {hour:02d}:{minute:02d} ({request.identifier})")
    return 0


def remind(argv: list[str] | None = None) -> None:
    """CLI entry point scheduling the daily reminder.

    Usage:
        health-digest-remind
    """
    parser = argparse.ArgumentParser(description="Schedule the daily summary reminder")
    parser.parse_args(argv)
    sys.exit(asyncio.run(_schedule_reminder()))
