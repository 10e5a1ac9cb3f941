"""System-wide default routing matrix.

Used whenever a user has no override for an event type. Event types missing
here fall through to the resolver's safe default (in-app, normal priority).
"""

from notifications.notification.notification import (
    EventType,
    NotificationChannel,
    NotificationPriority,
)

_IN_APP = NotificationChannel.IN_APP.value
_EMAIL = NotificationChannel.EMAIL.value
_CHAT = NotificationChannel.CHAT.value
_SMS = NotificationChannel.SMS.value

DEFAULT_ROUTING_MATRIX: dict[str, dict] = {
    EventType.NEW_LETTER.value: {
        "channels": [_IN_APP, _EMAIL],
        "priority": NotificationPriority.NORMAL.value,
    },
    EventType.COMMENT.value: {
        "channels": [_IN_APP, _EMAIL],
        "priority": NotificationPriority.NORMAL.value,
    },
    EventType.STATUS.value: {
        "channels": [_IN_APP],
        "priority": NotificationPriority.NORMAL.value,
    },
    EventType.ASSIGNMENT.value: {
        "channels": [_IN_APP, _EMAIL, _CHAT],
        "priority": NotificationPriority.HIGH.value,
    },
    EventType.DEADLINE_URGENT.value: {
        "channels": [_IN_APP, _EMAIL, _CHAT],
        "priority": NotificationPriority.HIGH.value,
    },
    EventType.DEADLINE_OVERDUE.value: {
        "channels": [_IN_APP, _EMAIL, _CHAT, _SMS],
        "priority": NotificationPriority.CRITICAL.value,
    },
    EventType.SYSTEM.value: {
        "channels": [_IN_APP],
        "priority": NotificationPriority.LOW.value,
    },
}

FALLBACK_ENTRY = {
    "channels": [_IN_APP],
    "priority": NotificationPriority.NORMAL.value,
}
