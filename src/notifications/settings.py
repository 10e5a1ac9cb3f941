"""Engine settings — tunables read from ``NOTIFICATIONS_*`` environment variables.

Dedupe windows, the quiet-hours importance threshold, pool sizing, retry
policy and channel adapter selection are product choices, so they live here
instead of being scattered as constants.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DEDUPE_WINDOWS = {
    "NEW_LETTER": 10,
    "COMMENT": 10,
    "STATUS": 1,
    "ASSIGNMENT": 1,
    "DEADLINE_URGENT": 60,
    "DEADLINE_OVERDUE": 60,
    "SYSTEM": 0,
}


class EngineSettings(BaseSettings):
    """Runtime configuration for the dispatch engine.

    ``NOTIFICATIONS_DEDUPE_WINDOWS`` takes a JSON object that is merged over
    the defaults, e.g. ``{"COMMENT": 5}``.
    """

    model_config = SettingsConfigDict(env_prefix="NOTIFICATIONS_", extra="ignore")

    # Dedupe
    dedupe_windows: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_DEDUPE_WINDOWS))
    default_dedupe_window: int = 10
    dedupe_database_uri: str = "sqlite://"

    # Quiet hours: priorities at or above this bypass "ImportantOnly" quiet hours
    important_priority: str = "High"

    # Delivery pool
    workers: int = Field(default=4, ge=1)
    max_queue: int = Field(default=1000, ge=1)
    overflow_policy: str = "reject_new"
    channel_timeout_seconds: float = Field(default=10.0, gt=0)
    retry_attempts: int = Field(default=2, ge=0)
    retry_backoff_seconds: float = Field(default=0.5, ge=0)

    # Preference cache
    preference_cache_ttl: float = Field(default=60.0, ge=0)

    # Retention
    retention_days: int = Field(default=30, ge=1)

    # Channel adapters: "fake", a real adapter name, or "disabled"
    email_adapter: str = "fake"
    chat_adapter: str = "fake"
    sms_adapter: str = "fake"
    push_adapter: str = "fake"

    # Transport credentials
    sendgrid_api_key: str | None = None
    email_from: str | None = None
    telegram_bot_token: str | None = None
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_from: str | None = None
    vapid_private_key: str | None = None
    vapid_claims_email: str | None = None

    @field_validator("overflow_policy")
    @classmethod
    def _known_policy(cls, value: str) -> str:
        if value not in ("reject_new", "drop_oldest"):
            raise ValueError(f"Unknown overflow policy: {value}")
        return value

    @field_validator("dedupe_windows")
    @classmethod
    def _merge_over_defaults(cls, value: dict[str, int]) -> dict[str, int]:
        return {**DEFAULT_DEDUPE_WINDOWS, **value}

    def dedupe_window_for(self, event_type: str) -> int:
        """Default dedupe window in minutes for an event type."""
        return self.dedupe_windows.get(event_type, self.default_dedupe_window)


_settings: EngineSettings | None = None


def get_settings() -> EngineSettings:
    """Return the process-wide settings (loaded once from the environment)."""
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings


def reset_settings():
    """Drop cached settings (useful for testing)."""
    global _settings
    _settings = None
