"""Configuration management using pydantic-settings."""

import threading
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Valid log levels
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ChatSettings(BaseSettings):
    """Chat-completion API settings."""

    model_config = SettingsConfigDict(env_prefix="CHAT_")

    api_key: str | None = Field(default=None, description="Bearer token for the chat API")
    endpoint: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        description="Chat-completion endpoint URL",
    )
    model: str = Field(default="gpt-4o-mini", description="Model identifier")
    timeout_seconds: float = Field(default=30.0, description="Request timeout in seconds")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Validate endpoint is an HTTP(S) URL."""
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Endpoint must be an http(s) URL, got {v!r}")
        return v.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v


class PromptSettings(BaseSettings):
    """Prompt rendering settings."""

    model_config = SettingsConfigDict(env_prefix="PROMPT_")

    workout_limit: int = Field(default=5, description="Most recent workouts to render")
    include_yesterday: bool = Field(
        default=True, description="Render the yesterday bucket before today/tomorrow"
    )

    @field_validator("workout_limit")
    @classmethod
    def validate_workout_limit(cls, v: int) -> int:
        """Validate workout limit is reasonable."""
        if not 1 <= v <= 50:
            raise ValueError(f"Workout limit must be between 1 and 50, got {v}")
        return v


class SourceSettings(BaseSettings):
    """Data source query settings."""

    model_config = SettingsConfigDict(env_prefix="SOURCES_")

    sleep_lookback_days: int = Field(default=7, description="Trailing days of sleep to fetch")
    workout_detail_limit: int = Field(
        default=5, description="Recent workouts that get per-interval statistics"
    )

    @field_validator("sleep_lookback_days")
    @classmethod
    def validate_sleep_lookback(cls, v: int) -> int:
        """Validate sleep lookback window."""
        if not 1 <= v <= 31:
            raise ValueError(f"Sleep lookback must be between 1 and 31 days, got {v}")
        return v

    @field_validator("workout_detail_limit")
    @classmethod
    def validate_workout_detail_limit(cls, v: int) -> int:
        """Validate workout detail limit is non-negative."""
        if v < 0:
            raise ValueError(f"Workout detail limit cannot be negative, got {v}")
        return v


class NotificationSettings(BaseSettings):
    """Local reminder notification settings."""

    model_config = SettingsConfigDict(env_prefix="NOTIFY_")

    enabled: bool = Field(default=True, description="Schedule local reminders")
    daily_hour: int = Field(default=8, description="Hour of the daily reminder")
    daily_minute: int = Field(default=30, description="Minute of the daily reminder")
    summary_ready_delay_seconds: float = Field(
        default=5.0, description="Delay before the summary-ready notification fires"
    )

    @field_validator("daily_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour of day."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("daily_minute")
    @classmethod
    def validate_minute(cls, v: int) -> int:
        """Validate minute of hour."""
        if not 0 <= v <= 59:
            raise ValueError(f"Minute must be between 0 and 59, got {v}")
        return v


class TracingSettings(BaseSettings):
    """OpenTelemetry tracing settings."""

    model_config = SettingsConfigDict(env_prefix="TRACING_")

    enabled: bool = Field(default=False, description="Enable OpenTelemetry tracing")
    service_name: str = Field(default="health-digest", description="Service name for spans")


class AppSettings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="APP_")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: json or console")
    timezone: str | None = Field(
        default=None, description="IANA timezone for day boundaries (default: host local)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        normalized = v.upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )
        return normalized

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is valid."""
        normalized = v.lower()
        if normalized not in ("json", "console"):
            raise ValueError(f"Invalid log format '{v}'. Must be 'json' or 'console'")
        return normalized

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        """Validate timezone names an IANA zone."""
        if v is None or not v.strip():
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'") from e
        return v

    def tzinfo(self) -> ZoneInfo | None:
        """Configured zone, or None for the host's local zone."""
        return ZoneInfo(self.timezone) if self.timezone else None


class Settings(BaseSettings):
    """Combined application settings."""

    chat: ChatSettings = Field(default_factory=ChatSettings)
    prompt: PromptSettings = Field(default_factory=PromptSettings)
    sources: SourceSettings = Field(default_factory=SourceSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    tracing: TracingSettings = Field(default_factory=TracingSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            chat=ChatSettings(),
            prompt=PromptSettings(),
            sources=SourceSettings(),
            notifications=NotificationSettings(),
            tracing=TracingSettings(),
            app=AppSettings(),
        )


# Global settings instance with thread-safe initialization
_settings: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get or create the global settings instance.

    Thread-safe singleton pattern using double-checked locking.
    """
    global _settings
    if _settings is None:
        with _settings_lock:
            # Double-check after acquiring lock
            if _settings is None:
                _settings = Settings.load()
    return _settings
