"""Tests for the preference resolver — event type + profile → delivery plan."""

import pytest
from notifications.notification.notification import EventType, NotificationChannel, NotificationPriority
from notifications.preference.defaults import DEFAULT_ROUTING_MATRIX
from notifications.preference.preference import PreferenceSnapshot
from notifications.preference.resolver import DeliveryPlan, PreferenceResolver, resolve

ALL_EVENT_TYPES = [e.value for e in EventType]


def _profile(**overrides):
    toggles = overrides.pop("toggles", {})
    channel_toggles = {c.value: True for c in NotificationChannel}
    channel_toggles.update(toggles)
    return PreferenceSnapshot(user_id="u1", channel_toggles=channel_toggles, **overrides)


def _default_plan(event_type):
    entry = DEFAULT_ROUTING_MATRIX[event_type]
    return DeliveryPlan(
        channels=frozenset(NotificationChannel(c) for c in entry["channels"]),
        priority=NotificationPriority(entry["priority"]),
    )


# ---------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------
class TestDefaultResolution:
    @pytest.mark.parametrize("event_type", ALL_EVENT_TYPES)
    def test_empty_profile_gets_system_default(self, event_type):
        assert resolve(event_type, _profile()) == _default_plan(event_type)

    @pytest.mark.parametrize("event_type", ALL_EVENT_TYPES)
    def test_no_profile_gets_system_default(self, event_type):
        assert resolve(event_type, None) == _default_plan(event_type)

    def test_assignment_default_is_high_on_three_channels(self):
        plan = resolve(EventType.ASSIGNMENT.value)
        assert plan.priority == NotificationPriority.HIGH
        assert plan.channel_values() == ["InApp", "Email", "Chat"]

    def test_overdue_default_is_critical_with_sms(self):
        plan = resolve(EventType.DEADLINE_OVERDUE.value)
        assert plan.priority == NotificationPriority.CRITICAL
        assert NotificationChannel.SMS in plan.channels

    def test_unknown_event_type_gets_in_app_normal(self):
        plan = resolve("LETTER_ARCHIVED", _profile())
        assert plan.channels == frozenset({NotificationChannel.IN_APP})
        assert plan.priority == NotificationPriority.NORMAL

    def test_empty_event_type_does_not_raise(self):
        plan = resolve("", None)
        assert plan.channels == frozenset({NotificationChannel.IN_APP})


# ---------------------------------------------------------------
# User overrides
# ---------------------------------------------------------------
class TestOverrides:
    def test_override_replaces_default(self):
        profile = _profile(routing_matrix={"COMMENT": {"channels": ["InApp", "Push"], "priority": "High"}})
        plan = resolve("COMMENT", profile)
        assert plan.channels == frozenset({NotificationChannel.IN_APP, NotificationChannel.PUSH})
        assert plan.priority == NotificationPriority.HIGH

    def test_override_for_other_type_does_not_leak(self):
        profile = _profile(routing_matrix={"COMMENT": {"channels": ["Push"], "priority": "High"}})
        assert resolve("STATUS", profile) == _default_plan("STATUS")

    def test_unknown_channel_in_override_is_skipped(self):
        profile = _profile(routing_matrix={"STATUS": {"channels": ["InApp", "Fax"], "priority": "Low"}})
        plan = resolve("STATUS", profile)
        assert plan.channels == frozenset({NotificationChannel.IN_APP})

    def test_invalid_priority_falls_back_to_normal(self):
        profile = _profile(routing_matrix={"STATUS": {"channels": ["InApp"], "priority": "Urgent"}})
        assert resolve("STATUS", profile).priority == NotificationPriority.NORMAL


# ---------------------------------------------------------------
# Global toggles
# ---------------------------------------------------------------
class TestGlobalToggles:
    @pytest.mark.parametrize("event_type", ALL_EVENT_TYPES + ["UNKNOWN"])
    @pytest.mark.parametrize("channel", [c.value for c in NotificationChannel])
    def test_disabled_channel_never_in_plan(self, event_type, channel):
        profile = _profile(
            toggles={channel: False},
            routing_matrix={
                "COMMENT": {"channels": [c.value for c in NotificationChannel], "priority": "Normal"},
            },
        )
        plan = resolve(event_type, profile)
        assert NotificationChannel(channel) not in plan.channels

    def test_all_channels_disabled_gives_empty_plan(self):
        profile = _profile(toggles={c.value: False for c in NotificationChannel})
        plan = resolve("ASSIGNMENT", profile)
        assert plan.channels == frozenset()
        assert plan.priority == NotificationPriority.HIGH


class TestDeliveryPlan:
    def test_external_channels_exclude_in_app(self):
        plan = resolve("ASSIGNMENT")
        assert plan.external_channels == frozenset({NotificationChannel.EMAIL, NotificationChannel.CHAT})

    def test_resolver_uses_injected_defaults(self):
        resolver = PreferenceResolver(defaults={"STATUS": {"channels": ["SMS"], "priority": "Critical"}})
        plan = resolver.resolve("STATUS")
        assert plan.channels == frozenset({NotificationChannel.SMS})
        assert plan.priority == NotificationPriority.CRITICAL
