"""Shared BDD fixtures and step definitions for the Notifications domain."""

from datetime import UTC, datetime

import pytest
from notifications.channel import reset_channels
from notifications.channel.port import OutcomeStatus
from notifications.notification.notification import Notification
from notifications.settings import reset_settings
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

DAY = datetime(2026, 10, 19, tzinfo=UTC)


def _at(clock: str) -> datetime:
    hour, minute = (int(part) for part in clock.split(":"))
    return DAY.replace(hour=hour, minute=minute)


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def dispatch():
    """The last raised event and its dispatch report."""
    return {"event": None, "at": None, "report": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("chat delivery is disabled")
def chat_disabled(monkeypatch):
    monkeypatch.setenv("NOTIFICATIONS_CHAT_ADAPTER", "disabled")
    reset_settings()
    reset_channels()


@given(parsers.cfparse('a recipient "{user_id}" with an email address and a chat id'))
def recipient_with_contacts(engine, user_id):
    engine.directory.register(user_id, email=f"{user_id}@example.com", chat_id=f"chat-{user_id}", phone="+15550001")


@given(parsers.cfparse('"{user_id}" routes {event_type} events to "{channels}"'))
def routes_event_type(engine, user_id, event_type, channels):
    engine.update_preference_profile(
        user_id,
        {"routing_matrix": {event_type: {"channels": channels.split(","), "priority": "Normal"}}},
    )


@given(parsers.cfparse('"{user_id}" has quiet hours from "{start}" to "{end}" for all notifications'))
def quiet_hours_for_all(engine, user_id, start, end):
    engine.update_preference_profile(
        user_id,
        {"quiet_hours_enabled": True, "quiet_hours_start": start, "quiet_hours_end": end, "quiet_mode": "All"},
    )


@given(parsers.cfparse('"{user_id}" receives a "{frequency}" digest'))
def receives_digest(engine, user_id, frequency):
    engine.update_preference_profile(user_id, {"digest_frequency": frequency})


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('a {event_type} event for "{resource_id}" is raised for "{user_id}" at "{clock}"'))
@when(parsers.cfparse('an {event_type} event for "{resource_id}" is raised for "{user_id}" at "{clock}"'))
def raise_event_at(engine, dispatch, event_type, resource_id, user_id, clock):
    dispatch["event"] = {
        "type": event_type,
        "resource_id": resource_id,
        "recipient_ids": [user_id],
        "title": f"{event_type} on {resource_id}",
    }
    dispatch["at"] = _at(clock)
    dispatch["report"] = engine.raise_event(dispatch["event"], now=dispatch["at"])
    assert engine.drain(5)


@when("pending digests are flushed")
def flush_digests(engine):
    engine.flush_digests()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{user_id}" has {count:d} notification'))
@then(parsers.cfparse('"{user_id}" has {count:d} notifications'))
def notification_count(user_id, count):
    repo = current_domain.repository_for(Notification)
    assert repo._dao.query.filter(user_id=user_id).all().total == count


@then(parsers.cfparse('the notification for "{user_id}" is "{mode}"'))
def notification_mode(dispatch, user_id, mode):
    notification = current_domain.repository_for(Notification).get(dispatch["report"].created[user_id])
    assert notification.delivery_mode == mode


@then(parsers.cfparse("{count:d} email was sent"))
@then(parsers.cfparse("{count:d} emails were sent"))
def emails_sent(email, count):
    assert len(email.sent_emails) == count


@then(parsers.cfparse("{count:d} chat message was sent"))
@then(parsers.cfparse("{count:d} chat messages were sent"))
def chat_messages_sent(chat, count):
    assert len(chat.sent_messages) == count


@then(parsers.cfparse('the email subject is "{subject}"'))
def email_subject(email, subject):
    assert email.sent_emails[-1]["subject"] == subject


@then(parsers.cfparse("the {channel} channel reports {count:d} unavailable outcome"))
def unavailable_outcomes(engine, channel, count):
    assert engine.diagnostics.count(channel, OutcomeStatus.UNAVAILABLE) == count


@then("the update is rejected")
def update_rejected(error):
    assert isinstance(error["exc"], ValidationError)
