"""Notification aggregate (CQRS) — the authoritative in-app inbox record.

One notification exists per (raised event, recipient) pair that passed the
dedupe gate. It is written before any external channel is attempted, so the
inbox reflects every notification even when email, chat, SMS or push fail
or are held back by quiet hours or a digest. Per-channel delivery is not
persisted; only the resolved channel set and the delivery mode are kept.

Lifecycle:
    created (unread) → read
    created | read → deleted (explicit user action or retention sweep)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from notifications.domain import notifications
from notifications.notification.events import NotificationCreated, NotificationRead
from protean.fields import Boolean, DateTime, Identifier, String, Text


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class EventType(Enum):
    NEW_LETTER = "NEW_LETTER"
    COMMENT = "COMMENT"
    STATUS = "STATUS"
    ASSIGNMENT = "ASSIGNMENT"
    DEADLINE_URGENT = "DEADLINE_URGENT"
    DEADLINE_OVERDUE = "DEADLINE_OVERDUE"
    SYSTEM = "SYSTEM"


class NotificationChannel(Enum):
    IN_APP = "InApp"
    EMAIL = "Email"
    CHAT = "Chat"
    SMS = "SMS"
    PUSH = "Push"


class NotificationPriority(Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    NotificationPriority.LOW: 0,
    NotificationPriority.NORMAL: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.CRITICAL: 3,
}


class DeliveryMode(Enum):
    IMMEDIATE = "Immediate"
    DIGEST = "Digest"
    SUPPRESSED = "Suppressed"


EXTERNAL_CHANNELS = (
    NotificationChannel.EMAIL,
    NotificationChannel.CHAT,
    NotificationChannel.SMS,
    NotificationChannel.PUSH,
)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class Notification:
    """A notification in a user's inbox."""

    # Recipient
    user_id: Identifier(required=True)

    # Classification
    notification_type: String(required=True, max_length=50)
    priority: String(choices=NotificationPriority, default=NotificationPriority.NORMAL.value)

    # Content
    title: String(required=True, max_length=500)
    body: Text()
    link: String(max_length=500)

    # Source
    resource_id: String(max_length=200)
    actor_id: Identifier()
    dedupe_fingerprint: String(max_length=64)

    # Delivery decision
    delivery_mode: String(choices=DeliveryMode, default=DeliveryMode.IMMEDIATE.value)
    channels: Text()  # JSON list of NotificationChannel values

    # Read state
    read: Boolean(default=False)
    read_at: DateTime()

    created_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id,
        notification_type,
        title,
        body=None,
        priority=NotificationPriority.NORMAL.value,
        channels=None,
        delivery_mode=DeliveryMode.IMMEDIATE.value,
        resource_id=None,
        actor_id=None,
        link=None,
        dedupe_fingerprint=None,
        created_at=None,
    ):
        """Create a new unread notification."""
        now = created_at or datetime.now(UTC)
        channel_values = list(channels or [])

        notification = cls(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            body=body,
            priority=priority,
            channels=json.dumps(channel_values),
            delivery_mode=delivery_mode,
            resource_id=resource_id,
            actor_id=actor_id,
            link=link,
            dedupe_fingerprint=dedupe_fingerprint,
            read=False,
            created_at=now,
        )

        notification.raise_(
            NotificationCreated(
                notification_id=str(notification.id),
                user_id=str(user_id),
                notification_type=notification_type,
                priority=priority,
                delivery_mode=delivery_mode,
                channels=json.dumps(channel_values),
                resource_id=resource_id,
                created_at=now,
            )
        )

        return notification

    # -------------------------------------------------------------------
    # Read state
    # -------------------------------------------------------------------
    def mark_read(self, read_at=None):
        """Mark the notification read. Returns False if it already was."""
        if self.read:
            return False

        now = read_at or datetime.now(UTC)
        self.read = True
        self.read_at = now

        self.raise_(
            NotificationRead(
                notification_id=str(self.id),
                user_id=str(self.user_id),
                read_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------
    def get_channels(self):
        """Return the resolved channel values as a list."""
        return json.loads(self.channels) if self.channels else []

    def to_dict(self):
        return {
            "notification_id": str(self.id),
            "user_id": str(self.user_id),
            "notification_type": self.notification_type,
            "priority": self.priority,
            "title": self.title,
            "body": self.body,
            "link": self.link,
            "resource_id": self.resource_id,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "delivery_mode": self.delivery_mode,
            "channels": self.get_channels(),
            "read": bool(self.read),
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
