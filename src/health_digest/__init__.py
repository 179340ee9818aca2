"""Daily health and calendar digest.

Aggregates health metrics, sleep, mindful sessions, workouts, calendar
events and reminders into one immutable snapshot per fetch cycle, renders
it into a deterministic prompt and asks a chat-completion API for a
human-readable summary.

Modules:
    config: Configuration management using pydantic-settings
    sources: Metric, workout and calendar source adapters
    aggregator: Fetch-cycle coordination and snapshot publication
    prompt: Snapshot rendering and chat message packaging
    chat: Chat-completion client
    service: End-to-end summary pipeline

Example:
    Print the rendered snapshot of an export::

        $ health-digest-snapshot --export export.json

    Generate a daily summary::

        $ health-digest-summary --export export.json
"""

__version__ = "0.1.0"

from .config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
