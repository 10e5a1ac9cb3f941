"""Preference resolver — turns (event type, profile) into a delivery plan.

The resolver is a pure function of its inputs and never fails: a user
override wins, then the system default matrix, then in-app at normal
priority. Global channel toggles are applied last, so a channel switched off
globally never appears in a plan.
"""

from dataclasses import dataclass

from notifications.notification.notification import NotificationChannel, NotificationPriority
from notifications.preference.defaults import DEFAULT_ROUTING_MATRIX, FALLBACK_ENTRY


@dataclass(frozen=True)
class DeliveryPlan:
    channels: frozenset
    priority: NotificationPriority

    @property
    def external_channels(self):
        return frozenset(c for c in self.channels if c != NotificationChannel.IN_APP)

    def channel_values(self):
        """Channel values in a stable order."""
        return [c.value for c in NotificationChannel if c in self.channels]


def _entry_for(event_type, profile, defaults):
    if profile is not None:
        entry = profile.routing_matrix.get(event_type)
        if entry:
            return entry
    return defaults.get(event_type) or FALLBACK_ENTRY


def _coerce_priority(value):
    try:
        return NotificationPriority(value)
    except ValueError:
        return NotificationPriority.NORMAL


def resolve(event_type, profile=None, defaults=DEFAULT_ROUTING_MATRIX) -> DeliveryPlan:
    """Resolve the delivery plan for one recipient.

    Args:
        event_type: Event type string; unknown types get the safe default.
        profile: The recipient's ``PreferenceSnapshot``, or None if they have none.
        defaults: System default routing matrix.
    """
    entry = _entry_for(event_type, profile, defaults)

    channels = set()
    for value in entry.get("channels", ()):
        try:
            channels.add(NotificationChannel(value))
        except ValueError:
            continue

    if profile is not None:
        channels = {c for c in channels if profile.channel_enabled(c.value)}

    return DeliveryPlan(
        channels=frozenset(channels),
        priority=_coerce_priority(entry.get("priority")),
    )


class PreferenceResolver:
    """Resolver bound to a default matrix, for injection into the dispatcher."""

    def __init__(self, defaults=None):
        self.defaults = DEFAULT_ROUTING_MATRIX if defaults is None else defaults

    def resolve(self, event_type, profile=None) -> DeliveryPlan:
        return resolve(event_type, profile, self.defaults)
