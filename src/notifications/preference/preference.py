"""NotificationPreference aggregate (CQRS) — a user's notification profile.

One profile per user, mutable only by its owner. Holds global per-channel
toggles, per-event-type mutes and routing overrides (channels + priority),
quiet hours, digest cadence and display options. A muted event type produces
no notification at all. Display options only affect presentation; the engine
stores and returns them but never routes on them.

Partial updates go through ``apply_patch``: fields absent from the patch are
left untouched, and routing overrides are merged per event type.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from notifications.domain import notifications
from notifications.notification.notification import (
    EventType,
    NotificationChannel,
    NotificationPriority,
)
from notifications.preference.events import PreferencesCreated, PreferencesUpdated
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, Text


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class QuietMode(Enum):
    ALL = "All"
    IMPORTANT_ONLY = "ImportantOnly"


class DigestFrequency(Enum):
    INSTANT = "Instant"
    DAILY = "Daily"
    WEEKLY = "Weekly"


_TOGGLE_FIELDS = {
    NotificationChannel.IN_APP.value: "in_app_enabled",
    NotificationChannel.EMAIL.value: "email_enabled",
    NotificationChannel.CHAT.value: "chat_enabled",
    NotificationChannel.SMS.value: "sms_enabled",
    NotificationChannel.PUSH.value: "push_enabled",
}

_EVENT_TOGGLE_FIELDS = {
    EventType.NEW_LETTER.value: "notify_on_new_letter",
    EventType.COMMENT.value: "notify_on_comment",
    EventType.STATUS.value: "notify_on_status_change",
    EventType.ASSIGNMENT.value: "notify_on_assignment",
    EventType.DEADLINE_URGENT.value: "notify_on_deadline",
    EventType.DEADLINE_OVERDUE.value: "notify_on_deadline",
    EventType.SYSTEM.value: "notify_on_system",
}

_BOOLEAN_FIELDS = (
    *_TOGGLE_FIELDS.values(),
    *dict.fromkeys(_EVENT_TOGGLE_FIELDS.values()),
    "quiet_hours_enabled",
    "group_similar",
    "show_previews",
)
_TIME_FIELDS = ("quiet_hours_start", "quiet_hours_end")
_ENUM_FIELDS = {"quiet_mode": QuietMode, "digest_frequency": DigestFrequency}
PATCHABLE_FIELDS = (*_BOOLEAN_FIELDS, *_TIME_FIELDS, *_ENUM_FIELDS, "timezone", "routing_matrix")


def parse_time_of_day(value):
    """Parse ``HH:MM`` into minutes after midnight. Raises ValueError when malformed."""
    parts = str(value).split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(value)
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(value)
    return hour * 60 + minute


def validate_routing_entry(event_type, entry):
    """Validate one routing override and return it in canonical form."""
    key = f"routing_matrix.{event_type}"
    if event_type not in {e.value for e in EventType}:
        raise ValidationError({key: [f"Unknown event type: {event_type}"]})
    if not isinstance(entry, dict):
        raise ValidationError({key: ["Entry must be an object with channels and priority"]})

    channels = entry.get("channels")
    if not isinstance(channels, list | tuple | set) or not channels:
        raise ValidationError({key: ["At least one channel must be enabled"]})
    valid_channels = {c.value for c in NotificationChannel}
    unknown = [c for c in channels if c not in valid_channels]
    if unknown:
        raise ValidationError({key: [f"Unknown channels: {', '.join(map(str, unknown))}"]})

    priority = entry.get("priority", NotificationPriority.NORMAL.value)
    if priority not in {p.value for p in NotificationPriority}:
        raise ValidationError({key: [f"Unknown priority: {priority}"]})

    ordered = [c.value for c in NotificationChannel if c.value in set(channels)]
    return {"channels": ordered, "priority": priority}


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PreferenceSnapshot:
    """Immutable view of a profile, safe to cache and share across threads."""

    user_id: str
    channel_toggles: dict = field(default_factory=lambda: dict.fromkeys(_TOGGLE_FIELDS, True))
    event_toggles: dict = field(default_factory=lambda: dict.fromkeys(_EVENT_TOGGLE_FIELDS, True))
    routing_matrix: dict = field(default_factory=dict)
    quiet_hours_enabled: bool = False
    quiet_hours_start: str = "22:00"
    quiet_hours_end: str = "08:00"
    quiet_mode: str = QuietMode.IMPORTANT_ONLY.value
    digest_frequency: str = DigestFrequency.INSTANT.value
    timezone: str = "UTC"

    def channel_enabled(self, channel):
        return self.channel_toggles.get(channel, False)

    def event_enabled(self, event_type):
        """Event types without a toggle are always enabled."""
        return self.event_toggles.get(event_type, True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class NotificationPreference:
    """A user's notification profile."""

    user_id: Identifier(required=True, unique=True)

    # Global channel toggles
    in_app_enabled: Boolean(default=True)
    email_enabled: Boolean(default=True)
    chat_enabled: Boolean(default=True)
    sms_enabled: Boolean(default=True)
    push_enabled: Boolean(default=True)

    # Per-event-type mutes
    notify_on_new_letter: Boolean(default=True)
    notify_on_comment: Boolean(default=True)
    notify_on_status_change: Boolean(default=True)
    notify_on_assignment: Boolean(default=True)
    notify_on_deadline: Boolean(default=True)
    notify_on_system: Boolean(default=True)

    # Per-event-type overrides
    routing_matrix: Text()  # JSON {event_type: {"channels": [...], "priority": ...}}

    # Quiet hours
    quiet_hours_enabled: Boolean(default=False)
    quiet_hours_start: String(max_length=5, default="22:00")
    quiet_hours_end: String(max_length=5, default="08:00")
    quiet_mode: String(choices=QuietMode, default=QuietMode.IMPORTANT_ONLY.value)
    timezone: String(max_length=64, default="UTC")

    # Digest cadence
    digest_frequency: String(choices=DigestFrequency, default=DigestFrequency.INSTANT.value)

    # Display options (presentation only)
    group_similar: Boolean(default=True)
    show_previews: Boolean(default=True)

    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create_default(cls, user_id):
        """Create a default profile: every channel toggled on, system matrix, no quiet hours."""
        now = datetime.now(UTC)

        preference = cls(
            user_id=user_id,
            routing_matrix=json.dumps({}),
            created_at=now,
            updated_at=now,
        )

        preference.raise_(
            PreferencesCreated(
                preference_id=str(preference.id),
                user_id=str(user_id),
                digest_frequency=preference.digest_frequency,
                created_at=now,
            )
        )

        return preference

    # -------------------------------------------------------------------
    # Partial update
    # -------------------------------------------------------------------
    def apply_patch(self, patch):
        """Merge ``patch`` over the current profile.

        Returns the list of fields that actually changed. Raises
        ValidationError (and changes nothing) if any value is invalid.
        """
        if not isinstance(patch, dict):
            raise ValidationError({"patch": ["Patch must be an object"]})

        unknown = sorted(set(patch) - set(PATCHABLE_FIELDS))
        if unknown:
            raise ValidationError({"patch": [f"Unknown fields: {', '.join(unknown)}"]})

        updates = {}
        for name, value in patch.items():
            if name in _BOOLEAN_FIELDS:
                if not isinstance(value, bool):
                    raise ValidationError({name: ["Must be true or false"]})
                updates[name] = value
            elif name in _TIME_FIELDS:
                try:
                    parse_time_of_day(value)
                except ValueError:
                    raise ValidationError({name: [f"Invalid time format: {value}. Use HH:MM"]}) from None
                updates[name] = value
            elif name in _ENUM_FIELDS:
                allowed = {e.value for e in _ENUM_FIELDS[name]}
                if value not in allowed:
                    raise ValidationError({name: [f"Must be one of: {', '.join(sorted(allowed))}"]})
                updates[name] = value
            elif name == "timezone":
                try:
                    ZoneInfo(str(value))
                except (ZoneInfoNotFoundError, ValueError):
                    raise ValidationError({"timezone": [f"Unknown timezone: {value}"]}) from None
                updates[name] = value
            elif name == "routing_matrix":
                updates[name] = self._merged_matrix(value)

        enabled = updates.get("quiet_hours_enabled", self.quiet_hours_enabled)
        start = updates.get("quiet_hours_start", self.quiet_hours_start)
        end = updates.get("quiet_hours_end", self.quiet_hours_end)
        if enabled and start == end:
            raise ValidationError({"quiet_hours": ["Quiet hours start and end must differ"]})

        changed = []
        for name, value in updates.items():
            current = self.get_routing_matrix() if name == "routing_matrix" else getattr(self, name)
            if current == value:
                continue
            if name == "routing_matrix":
                self.routing_matrix = json.dumps(value)
            else:
                setattr(self, name, value)
            changed.append(name)

        if not changed:
            return []

        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            PreferencesUpdated(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                changed_fields=json.dumps(changed),
                updated_at=now,
            )
        )

        return changed

    def _merged_matrix(self, overrides):
        if not isinstance(overrides, dict):
            raise ValidationError({"routing_matrix": ["Must be an object keyed by event type"]})

        matrix = self.get_routing_matrix()
        for event_type, entry in overrides.items():
            if entry is None:
                # Drop the override, falling back to the system default
                matrix.pop(event_type, None)
                continue
            matrix[event_type] = validate_routing_entry(event_type, entry)
        return matrix

    # -------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------
    def get_routing_matrix(self):
        return json.loads(self.routing_matrix) if self.routing_matrix else {}

    def channel_toggles(self):
        return {channel: bool(getattr(self, attr)) for channel, attr in _TOGGLE_FIELDS.items()}

    def event_toggles(self):
        return {event_type: bool(getattr(self, attr)) for event_type, attr in _EVENT_TOGGLE_FIELDS.items()}

    def snapshot(self):
        return PreferenceSnapshot(
            user_id=str(self.user_id),
            channel_toggles=self.channel_toggles(),
            event_toggles=self.event_toggles(),
            routing_matrix=self.get_routing_matrix(),
            quiet_hours_enabled=bool(self.quiet_hours_enabled),
            quiet_hours_start=self.quiet_hours_start,
            quiet_hours_end=self.quiet_hours_end,
            quiet_mode=self.quiet_mode,
            digest_frequency=self.digest_frequency,
            timezone=self.timezone or "UTC",
        )

    def to_dict(self):
        return {
            "preference_id": str(self.id),
            "user_id": str(self.user_id),
            **{attr: bool(getattr(self, attr)) for attr in _BOOLEAN_FIELDS},
            "quiet_hours_start": self.quiet_hours_start,
            "quiet_hours_end": self.quiet_hours_end,
            "quiet_mode": self.quiet_mode,
            "timezone": self.timezone,
            "digest_frequency": self.digest_frequency,
            "routing_matrix": self.get_routing_matrix(),
        }
