"""Application tests for reading and updating preference profiles."""

import json

import pytest
from notifications.preference.management import UpdatePreferenceProfile
from notifications.preference.preference import NotificationPreference
from protean import current_domain
from protean.exceptions import ValidationError


class TestGetPreferenceProfile:
    def test_missing_profile_returns_defaults(self, engine):
        profile = engine.get_preference_profile("u1")
        assert profile["preference_id"] is None
        assert profile["user_id"] == "u1"
        assert profile["email_enabled"] is True
        assert profile["digest_frequency"] == "Instant"
        assert profile["routing_matrix"] == {}

    def test_reading_does_not_persist_a_profile(self, engine):
        engine.get_preference_profile("u1")
        repo = current_domain.repository_for(NotificationPreference)
        assert repo._dao.query.filter(user_id="u1").all().total == 0


class TestUpdatePreferenceProfile:
    def test_round_trip_merges_over_prior_state(self, engine):
        engine.update_preference_profile("u1", {"email_enabled": False, "timezone": "Europe/Moscow"})
        engine.update_preference_profile("u1", {"digest_frequency": "Weekly"})

        profile = engine.get_preference_profile("u1")
        assert profile["preference_id"] is not None
        assert profile["email_enabled"] is False
        assert profile["timezone"] == "Europe/Moscow"
        assert profile["digest_frequency"] == "Weekly"
        assert profile["sms_enabled"] is True

    def test_same_patch_twice_is_idempotent(self, engine):
        patch = {"quiet_hours_enabled": True, "quiet_hours_start": "23:00", "quiet_hours_end": "07:00"}
        first = engine.update_preference_profile("u1", patch)
        second = engine.update_preference_profile("u1", patch)
        assert first == second

    def test_one_profile_per_user(self, engine):
        engine.update_preference_profile("u1", {"email_enabled": False})
        engine.update_preference_profile("u1", {"chat_enabled": False})
        repo = current_domain.repository_for(NotificationPreference)
        assert repo._dao.query.filter(user_id="u1").all().total == 1

    def test_invalid_patch_is_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.update_preference_profile("u1", {"quiet_hours_start": "24:15"})

    def test_override_requires_a_channel(self, engine):
        with pytest.raises(ValidationError):
            engine.update_preference_profile("u1", {"routing_matrix": {"COMMENT": {"channels": [], "priority": "Low"}}})

    def test_command_rejects_non_json_patch(self):
        with pytest.raises(ValidationError):
            current_domain.process(UpdatePreferenceProfile(user_id="u1", patch="{not json"), asynchronous=False)

    def test_command_returns_changed_fields(self):
        changed = current_domain.process(
            UpdatePreferenceProfile(user_id="u1", patch=json.dumps({"push_enabled": False})),
            asynchronous=False,
        )
        assert changed == ["push_enabled"]


class TestPreferencesAffectDispatch:
    def test_update_takes_effect_on_next_event(self, engine, directory, email):
        directory.register("u1", email="u1@example.com")
        comment = {"type": "COMMENT", "recipient_ids": ["u1"], "title": "New comment"}

        engine.raise_event({**comment, "resource_id": "L-1"})
        engine.update_preference_profile("u1", {"email_enabled": False})
        engine.raise_event({**comment, "resource_id": "L-2"})
        assert engine.drain(5)

        assert len(email.sent_emails) == 1

    def test_disabled_channel_is_not_in_notification(self, engine):
        engine.update_preference_profile("u1", {"chat_enabled": False})
        report = engine.raise_event({"type": "ASSIGNMENT", "resource_id": "L-3", "recipient_ids": ["u1"], "title": "L-3"})

        notifications = engine.list_notifications("u1").items
        assert [str(n.id) for n in notifications] == [report.created["u1"]]
        assert notifications[0].get_channels() == ["InApp", "Email"]
