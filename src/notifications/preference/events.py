"""Domain events for the NotificationPreference and PushSubscription aggregates."""

from notifications.domain import notifications
from protean.fields import DateTime, Identifier, String, Text


@notifications.event(part_of="NotificationPreference")
class PreferencesCreated:
    """Default notification preferences were created for a user."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    digest_frequency: String(required=True)
    created_at: DateTime(required=True)


@notifications.event(part_of="NotificationPreference")
class PreferencesUpdated:
    """A user changed part of their notification profile."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    changed_fields: Text(required=True)  # JSON list of field names
    updated_at: DateTime(required=True)


@notifications.event(part_of="PushSubscription")
class PushSubscriptionRegistered:
    """A client subscribed (or re-subscribed) to push notifications."""

    __version__ = 1

    subscription_id: Identifier(required=True)
    user_id: Identifier(required=True)
    endpoint: String(required=True, max_length=2000)
    registered_at: DateTime(required=True)


@notifications.event(part_of="PushSubscription")
class PushSubscriptionInvalidated:
    """A push endpoint was reported gone and will no longer be used."""

    __version__ = 1

    subscription_id: Identifier(required=True)
    user_id: Identifier(required=True)
    endpoint: String(required=True, max_length=2000)
    reason: String(required=True, max_length=500)
    invalidated_at: DateTime(required=True)
