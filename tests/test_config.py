"""Tests for configuration validation."""

from zoneinfo import ZoneInfo

import pytest

from health_digest.config import (
    VALID_LOG_LEVELS,
    AppSettings,
    ChatSettings,
    NotificationSettings,
    PromptSettings,
    Settings,
    SourceSettings,
)


def test_chat_defaults():
    """Chat settings default to the public endpoint and a 30s timeout."""
    settings = ChatSettings(_env_file=None)

    assert settings.endpoint == "https://api.openai.com/v1/chat/completions"
    assert settings.model == "gpt-4o-mini"
    assert settings.timeout_seconds == 30.0


def test_chat_endpoint_validation():
    """Endpoint must be an http(s) URL and loses its trailing slash."""
    with pytest.raises(ValueError, match="Endpoint must be an http"):
        ChatSettings(endpoint="ftp://example.com")

    settings = ChatSettings(endpoint="https://example.com/v1/chat/")
    assert settings.endpoint == "https://example.com/v1/chat"


def test_chat_timeout_validation():
    """Timeout must be positive."""
    with pytest.raises(ValueError, match="Timeout must be positive"):
        ChatSettings(timeout_seconds=0)


def test_chat_settings_read_environment(monkeypatch):
    """Chat settings are read from CHAT_ prefixed variables."""
    monkeypatch.setenv("CHAT_API_KEY", "sk-test")
    monkeypatch.setenv("CHAT_MODEL", "gpt-4o")

    settings = ChatSettings()

    assert settings.api_key == "sk-test"
    assert settings.model == "gpt-4o"


def test_prompt_workout_limit_validation():
    """Workout limit must be within 1..50."""
    assert PromptSettings().workout_limit == 5

    with pytest.raises(ValueError, match="Workout limit must be between 1 and 50"):
        PromptSettings(workout_limit=0)


def test_source_settings_validation():
    """Sleep lookback and workout detail limit enforce valid ranges."""
    with pytest.raises(ValueError, match="Sleep lookback must be between"):
        SourceSettings(sleep_lookback_days=0)

    with pytest.raises(ValueError, match="Workout detail limit cannot be negative"):
        SourceSettings(workout_detail_limit=-1)


def test_notification_time_validation():
    """Reminder time must be a valid wall-clock time."""
    settings = NotificationSettings()
    assert (settings.daily_hour, settings.daily_minute) == (8, 30)

    with pytest.raises(ValueError, match="Hour must be between 0 and 23"):
        NotificationSettings(daily_hour=24)

    with pytest.raises(ValueError, match="Minute must be between 0 and 59"):
        NotificationSettings(daily_minute=60)


def test_app_settings_normalize_log_fields():
    """App settings normalize log format and log level."""
    settings = AppSettings(log_level="debug", log_format="JSON")

    assert settings.log_level == "DEBUG"
    assert settings.log_format == "json"
    assert settings.log_level in VALID_LOG_LEVELS


def test_app_settings_reject_bad_values():
    """Unknown log levels, formats and timezones are rejected."""
    with pytest.raises(ValueError, match="Invalid log level"):
        AppSettings(log_level="verbose")

    with pytest.raises(ValueError, match="Invalid log format"):
        AppSettings(log_format="xml")

    with pytest.raises(ValueError, match="Unknown timezone"):
        AppSettings(timezone="Mars/Olympus_Mons")


def test_app_settings_timezone():
    """A configured timezone resolves to a ZoneInfo; blank means host local."""
    assert AppSettings(timezone="Europe/Berlin").tzinfo() == ZoneInfo("Europe/Berlin")
    assert AppSettings(timezone=" ").tzinfo() is None


def test_settings_load_groups():
    """Settings.load builds every configuration group."""
    settings = Settings.load()

    assert isinstance(settings.chat, ChatSettings)
    assert isinstance(settings.sources, SourceSettings)
    assert settings.tracing.service_name == "health-digest"
