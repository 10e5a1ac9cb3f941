"""Tests for engine settings loaded from the environment."""

import pytest
from notifications.settings import EngineSettings, get_settings, reset_settings
from pydantic import ValidationError


class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.important_priority == "High"
        assert settings.overflow_policy == "reject_new"
        assert settings.email_adapter == "fake"
        assert settings.dedupe_window_for("ASSIGNMENT") == 1
        assert settings.dedupe_window_for("SYSTEM") == 0

    def test_unknown_event_type_uses_default_window(self):
        assert EngineSettings(default_dedupe_window=7).dedupe_window_for("LETTER_ARCHIVED") == 7

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATIONS_WORKERS", "8")
        monkeypatch.setenv("NOTIFICATIONS_OVERFLOW_POLICY", "drop_oldest")
        monkeypatch.setenv("NOTIFICATIONS_CHAT_ADAPTER", "telegram")
        monkeypatch.setenv("UNRELATED", "x")
        settings = EngineSettings()
        assert settings.workers == 8
        assert settings.overflow_policy == "drop_oldest"
        assert settings.chat_adapter == "telegram"

    def test_dedupe_windows_merge_over_defaults(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATIONS_DEDUPE_WINDOWS", '{"COMMENT": 5}')
        settings = EngineSettings()
        assert settings.dedupe_window_for("COMMENT") == 5
        assert settings.dedupe_window_for("DEADLINE_URGENT") == 60

    def test_invalid_environment_value_is_rejected(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATIONS_OVERFLOW_POLICY", "block")
        with pytest.raises(ValidationError):
            EngineSettings()

    def test_invalid_overflow_policy(self):
        with pytest.raises(ValidationError):
            EngineSettings(overflow_policy="block")

    def test_workers_must_be_positive(self):
        with pytest.raises(ValidationError):
            EngineSettings(workers=0)

    def test_get_settings_is_cached_until_reset(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first
        monkeypatch.setenv("NOTIFICATIONS_RETENTION_DAYS", "90")
        reset_settings()
        assert get_settings().retention_days == 90
