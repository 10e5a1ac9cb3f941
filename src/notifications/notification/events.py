"""Domain events for the Notification aggregate."""

from notifications.domain import notifications
from protean.fields import DateTime, Identifier, String, Text


@notifications.event(part_of="Notification")
class NotificationCreated:
    """A notification was written to a user's inbox."""

    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    notification_type: String(required=True)
    priority: String(required=True)
    delivery_mode: String(required=True)
    channels: Text()
    resource_id: String()
    created_at: DateTime(required=True)


@notifications.event(part_of="Notification")
class NotificationRead:
    """A user read a notification."""

    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    read_at: DateTime(required=True)
