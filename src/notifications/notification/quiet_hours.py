"""Quiet-hours gate — decides whether external delivery waits.

Quiet hours are a window on a 24-hour clock in the user's own timezone. A
window whose start is after its end wraps past midnight (22:00–08:00). The
gate never affects the in-app record; it only holds back external channels.
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from notifications.notification.notification import EventType, NotificationPriority
from notifications.preference.preference import QuietMode, parse_time_of_day

logger = structlog.get_logger(__name__)

# Deadline reminders count as important whatever their routed priority
ALWAYS_IMPORTANT = frozenset({EventType.DEADLINE_URGENT.value, EventType.DEADLINE_OVERDUE.value})


def in_window(minute_of_day: int, start: int, end: int) -> bool:
    """True when ``minute_of_day`` is in the cyclic window ``[start, end)``.

    ``start == end`` is an empty window, not a whole-day one. Profile updates
    reject that combination, so it only reaches here from stored data.
    """
    if start == end:
        return False
    if start < end:
        return start <= minute_of_day < end
    return minute_of_day >= start or minute_of_day < end


def _local_time(now, timezone):
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    try:
        zone = ZoneInfo(timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown profile timezone, using UTC", timezone=timezone)
        zone = UTC
    return now.astimezone(zone)


class QuietHoursGate:
    def __init__(self, important_priority=NotificationPriority.HIGH):
        self.important_priority = NotificationPriority(important_priority)

    def bypasses(self, profile, priority, event_type=None) -> bool:
        priority = NotificationPriority(priority)
        if priority == NotificationPriority.CRITICAL:
            return True
        if profile.quiet_mode == QuietMode.IMPORTANT_ONLY.value:
            if event_type in ALWAYS_IMPORTANT:
                return True
            return priority.rank >= self.important_priority.rank
        return False

    def in_quiet_hours(self, now: datetime, profile) -> bool:
        if profile is None or not profile.quiet_hours_enabled:
            return False
        try:
            start = parse_time_of_day(profile.quiet_hours_start)
            end = parse_time_of_day(profile.quiet_hours_end)
        except ValueError:
            return False
        local = _local_time(now, profile.timezone)
        return in_window(local.hour * 60 + local.minute, start, end)

    def is_suppressed(self, now: datetime, profile, priority, event_type=None) -> bool:
        """True when external delivery of ``priority`` must wait at ``now``."""
        if not self.in_quiet_hours(now, profile):
            return False
        return not self.bypasses(profile, priority, event_type)
