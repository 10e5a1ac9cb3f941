"""Digest scheduler — holds low-urgency external delivery for batched sending.

Users on a Daily or Weekly cadence do not get Low/Normal priority items on
external channels right away. Those items go into a per-user bucket keyed by
(user, frequency, period), where the period is the ISO date for daily
digests and the ISO year-week for weekly ones. A periodic trigger calls
``flush``, which swaps matching buckets out under the lock and sends one
batched message per channel per user. Items appended during a flush land in
a fresh bucket and wait for the next one.
"""

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from notifications.channel.port import Message
from notifications.domain import notifications
from notifications.notification.notification import Notification, NotificationPriority
from notifications.preference.preference import DigestFrequency
from notifications.templates.digest import DigestTemplate
from protean.exceptions import ValidationError
from protean.fields import DateTime, String
from protean.utils.mixins import handle

logger = structlog.get_logger(__name__)

DIGEST_FREQUENCIES = (DigestFrequency.DAILY.value, DigestFrequency.WEEKLY.value)


def period_for(frequency: str, at: datetime) -> str:
    """Bucket period for ``at``: ``2026-10-19`` (daily) or ``2026-W43`` (weekly)."""
    if frequency == DigestFrequency.WEEKLY.value:
        year, week, _ = at.isocalendar()
        return f"{year}-W{week:02d}"
    return at.date().isoformat()


@dataclass(frozen=True)
class DigestItem:
    notification_id: str
    user_id: str
    event_type: str
    title: str
    body: str | None
    priority: str
    channels: tuple
    resource_id: str | None = None
    link: str | None = None
    created_at: datetime | None = None
    carried_over: bool = False


@dataclass
class DigestReport:
    users: int = 0
    items: int = 0
    messages: int = 0
    failed: int = 0
    per_user: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "users": self.users,
            "items": self.items,
            "messages": self.messages,
            "failed": self.failed,
        }


class DigestBuffer:
    """Pending digest buckets; concurrent appends, exclusive drain."""

    def __init__(self):
        self._buckets: dict[tuple, list] = {}
        self._lock = threading.Lock()

    def append(self, key: tuple, item: DigestItem):
        with self._lock:
            self._buckets.setdefault(key, []).append(item)

    def drain(self, predicate=None) -> dict[tuple, list]:
        """Remove and return every non-empty bucket whose key matches ``predicate``."""
        with self._lock:
            keys = [k for k, items in self._buckets.items() if items and (predicate is None or predicate(k))]
            return {k: self._buckets.pop(k) for k in keys}

    def pending(self, user_id=None) -> list:
        with self._lock:
            return [
                item
                for (bucket_user, _, _), items in self._buckets.items()
                if user_id is None or bucket_user == user_id
                for item in items
            ]

    def clear(self):
        with self._lock:
            self._buckets.clear()

    def __len__(self):
        with self._lock:
            return sum(len(items) for items in self._buckets.values())


class DigestScheduler:
    """Decides what is held for a digest and flushes buckets.

    ``deliver(user_id, channel, message)`` sends one message on one channel
    and returns the list of outcomes (one per address).
    """

    def __init__(self, deliver, buffer=None, clock=None):
        self.deliver = deliver
        self.buffer = buffer or DigestBuffer()
        self._clock = clock or (lambda: datetime.now(UTC))

    @staticmethod
    def accepts(profile) -> bool:
        """True if the user is on a Daily or Weekly cadence."""
        return profile is not None and profile.digest_frequency in DIGEST_FREQUENCIES

    def should_hold(self, profile, priority) -> bool:
        if not self.accepts(profile):
            return False
        return NotificationPriority(priority).rank <= NotificationPriority.NORMAL.rank

    def hold(self, profile, item: DigestItem, now: datetime | None = None):
        now = now or self._clock()
        frequency = profile.digest_frequency
        key = (item.user_id, frequency, period_for(frequency, now))
        self.buffer.append(key, item)
        logger.debug(
            "Held for digest",
            user_id=item.user_id,
            frequency=frequency,
            period=key[2],
            carried_over=item.carried_over,
        )

    def flush(self, frequency: str | None = None, as_of: datetime | None = None) -> DigestReport:
        """Send and clear pending digests.

        Args:
            frequency: Only flush Daily or Weekly buckets; None flushes both.
            as_of: Only flush buckets whose period is at or before this
                moment's period; None flushes every pending bucket.
        """
        if frequency is not None and frequency not in DIGEST_FREQUENCIES:
            raise ValueError(f"Unknown digest frequency: {frequency}")

        def matches(key):
            _, bucket_frequency, period = key
            if frequency is not None and bucket_frequency != frequency:
                return False
            if as_of is not None and period > period_for(bucket_frequency, as_of):
                return False
            return True

        drained = self.buffer.drain(matches)

        by_user: dict[tuple, list] = {}
        for (user_id, bucket_frequency, _), items in drained.items():
            by_user.setdefault((user_id, bucket_frequency), []).extend(items)

        report = DigestReport()
        for (user_id, bucket_frequency), items in by_user.items():
            items.sort(key=lambda i: i.created_at or datetime.min.replace(tzinfo=UTC))
            sent, failed = self._send_digest(user_id, bucket_frequency, items)
            report.users += 1
            report.items += len(items)
            report.messages += sent
            report.failed += failed
            report.per_user[user_id] = {"items": len(items), "messages": sent, "failed": failed}

        logger.info("Digests flushed", frequency=frequency, **report.to_dict())
        return report

    def _send_digest(self, user_id, frequency, items):
        channels = []
        for item in items:
            for channel in item.channels:
                if channel not in channels:
                    channels.append(channel)

        rendered = DigestTemplate.render(items, frequency)
        message = Message(
            subject=rendered["subject"],
            body=rendered["body"],
            event_type="DIGEST",
            priority=NotificationPriority.NORMAL.value,
            data={"frequency": frequency, "notification_ids": [i.notification_id for i in items]},
        )

        sent = failed = 0
        for channel in channels:
            try:
                outcomes = self.deliver(user_id, channel, message)
            except Exception:
                logger.exception("Digest delivery failed", user_id=user_id, channel=channel)
                failed += 1
                continue
            if any(o.delivered for o in outcomes):
                sent += 1
            else:
                failed += 1
        return sent, failed


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------
@notifications.command(part_of="Notification")
class ProcessDigests:
    """Flush pending digests; issued by a scheduler (cron) or an administrator."""

    frequency: String(choices=DigestFrequency)
    as_of: DateTime()


@notifications.command_handler(part_of=Notification)
class DigestCommandHandler:
    @handle(ProcessDigests)
    def process_digests(self, command: ProcessDigests):
        from notifications.engine import get_engine

        if command.frequency == DigestFrequency.INSTANT.value:
            raise ValidationError({"frequency": ["Instant delivery has no digest"]})
        return get_engine().digest_scheduler.flush(
            frequency=command.frequency,
            as_of=command.as_of,
        )
