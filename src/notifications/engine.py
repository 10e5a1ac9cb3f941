"""NotificationEngine — the contract collaborators use to reach this context.

The engine wires the dispatch pipeline together once per process: settings,
dedupe store, preference cache, resolver, quiet-hours gate, digest
scheduler, delivery pool and recipient directory. Collaborators call
``get_engine()`` and use the methods below; they never touch the pieces
directly.

``raise_event`` never raises. Preference and subscription operations go
through Protean commands and raise ``ValidationError`` on bad input, like
any other command in the domain.
"""

import json
import threading

import structlog
from notifications.directory import InMemoryDirectory
from notifications.domain import notifications
from notifications.notification.dedupe import DedupeGuard
from notifications.notification.delivery import ChannelDiagnostics, DeliveryExecutor, DeliveryPool
from notifications.notification.digest import DigestScheduler
from notifications.notification.dispatch import DispatchReport, Dispatcher
from notifications.notification.inbox import (
    DeleteNotifications,
    MarkNotificationsRead,
    PurgeNotifications,
    list_notifications,
)
from notifications.notification.quiet_hours import QuietHoursGate
from notifications.notification.raised_event import RaisedEvent
from notifications.preference.cache import PreferenceCache
from notifications.preference.management import UpdatePreferenceProfile, find_preference, load_snapshot
from notifications.preference.preference import NotificationPreference
from notifications.preference.resolver import PreferenceResolver
from notifications.preference.subscription import RegisterPushSubscription, UnregisterPushSubscription
from notifications.settings import get_settings
from protean.utils.globals import current_domain

logger = structlog.get_logger(__name__)


class NotificationEngine:
    def __init__(self, settings=None, domain=None, directory=None, dedupe_guard=None, clock=None):
        self.settings = settings or get_settings()
        self.domain = domain or notifications
        self.directory = directory or InMemoryDirectory()
        self.dedupe_guard = dedupe_guard or DedupeGuard.from_uri(self.settings.dedupe_database_uri)
        self.preference_cache = PreferenceCache(ttl=self.settings.preference_cache_ttl)
        self.resolver = PreferenceResolver()
        self.quiet_hours = QuietHoursGate(self.settings.important_priority)
        self.diagnostics = ChannelDiagnostics()

        self.executor = DeliveryExecutor(
            self.diagnostics,
            retry_attempts=self.settings.retry_attempts,
            retry_backoff_seconds=self.settings.retry_backoff_seconds,
        )
        self.pool = DeliveryPool(
            self.executor.execute,
            workers=self.settings.workers,
            max_queue=self.settings.max_queue,
            overflow_policy=self.settings.overflow_policy,
            domain=self.domain,
        )

        self.digest_scheduler = DigestScheduler(deliver=self._deliver_digest, clock=clock)
        self.dispatcher = Dispatcher(
            settings=self.settings,
            dedupe_guard=self.dedupe_guard,
            preference_cache=self.preference_cache,
            preference_loader=self._load_profile,
            resolver=self.resolver,
            quiet_hours=self.quiet_hours,
            digest_scheduler=self.digest_scheduler,
            pool=self.pool,
            executor=self.executor,
            directory=self.directory,
            diagnostics=self.diagnostics,
            clock=clock,
        )

    # -------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------
    def raise_event(self, event, now=None) -> DispatchReport:
        """Dispatch ``event`` (a RaisedEvent or a dict) to its recipients.

        Returns once every Notification record is written; channel delivery
        continues on the pool. Never raises.
        """
        try:
            if not isinstance(event, RaisedEvent):
                event = RaisedEvent.model_validate(event)
        except Exception as exc:
            event_type = event.get("type", "") if isinstance(event, dict) else ""
            logger.error("Rejected malformed event", event_type=event_type, error=str(exc))
            return DispatchReport(event_type=str(event_type or ""))

        try:
            with self.domain.domain_context():
                return self.dispatcher.dispatch(event, now=now)
        except Exception:
            logger.exception("Event dispatch failed", event_type=event.type)
            return DispatchReport(event_type=event.type)

    def _load_profile(self, user_id):
        with self.domain.domain_context():
            return load_snapshot(user_id)

    def _deliver_digest(self, user_id, channel, message):
        return self.dispatcher.deliver_now(user_id, channel, message)

    # -------------------------------------------------------------------
    # Push subscriptions
    # -------------------------------------------------------------------
    def register_push_subscription(self, user_id, endpoint, keys=None, expires_at=None) -> str:
        with self.domain.domain_context():
            return current_domain.process(
                RegisterPushSubscription(
                    user_id=str(user_id),
                    endpoint=endpoint,
                    keys=json.dumps(keys or {}),
                    expires_at=expires_at,
                ),
                asynchronous=False,
            )

    def unregister_push_subscription(self, user_id, endpoint) -> int:
        with self.domain.domain_context():
            return current_domain.process(
                UnregisterPushSubscription(user_id=str(user_id), endpoint=endpoint),
                asynchronous=False,
            )

    # -------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------
    def get_preference_profile(self, user_id) -> dict:
        """The user's profile; a default one when they never saved any."""
        with self.domain.domain_context():
            preference = find_preference(user_id)
            if preference is None:
                preference = NotificationPreference.create_default(user_id=str(user_id))
                data = preference.to_dict()
                data["preference_id"] = None
                return data
            return preference.to_dict()

    def update_preference_profile(self, user_id, patch: dict) -> dict:
        with self.domain.domain_context():
            current_domain.process(
                UpdatePreferenceProfile(user_id=str(user_id), patch=json.dumps(patch)),
                asynchronous=False,
            )
            self.preference_cache.invalidate(str(user_id))
            return find_preference(user_id).to_dict()

    # -------------------------------------------------------------------
    # Inbox
    # -------------------------------------------------------------------
    def list_notifications(self, user_id, read=None, notification_type=None, resource_id=None, page=1, page_size=20):
        with self.domain.domain_context():
            return list_notifications(
                user_id,
                read=read,
                notification_type=notification_type,
                resource_id=resource_id,
                page=page,
                page_size=page_size,
            )

    def mark_read(self, user_id, ids=None, all=False) -> int:
        with self.domain.domain_context():
            return current_domain.process(
                MarkNotificationsRead(
                    user_id=str(user_id),
                    notification_ids=json.dumps(list(ids or [])),
                    all_notifications=all,
                ),
                asynchronous=False,
            )

    def delete(self, user_id, ids=None, all=False) -> int:
        with self.domain.domain_context():
            return current_domain.process(
                DeleteNotifications(
                    user_id=str(user_id),
                    notification_ids=json.dumps(list(ids or [])),
                    all_notifications=all,
                ),
                asynchronous=False,
            )

    def purge_notifications(self, older_than_days=None) -> int:
        """Retention sweep of read notifications; also drops expired dedupe records."""
        days = self.settings.retention_days if older_than_days is None else older_than_days
        with self.domain.domain_context():
            removed = current_domain.process(PurgeNotifications(older_than_days=days), asynchronous=False)
        self.dedupe_guard.purge_expired()
        return removed

    # -------------------------------------------------------------------
    # Digests and operations
    # -------------------------------------------------------------------
    def flush_digests(self, frequency=None, as_of=None):
        with self.domain.domain_context():
            return self.digest_scheduler.flush(frequency=frequency, as_of=as_of)

    def channel_diagnostics(self) -> dict:
        from notifications.channel import get_channel

        channels = {}
        for channel in ("InApp", "Email", "Chat", "SMS", "Push"):
            sender = get_channel(channel)
            channels[channel] = {
                "adapter": type(sender).__name__,
                "outcomes": self.diagnostics.snapshot().get(channel, {}),
            }
        return {"channels": channels, "pool": self.pool.stats(), "pending_digest_items": len(self.digest_scheduler.buffer)}

    def drain(self, timeout=None) -> bool:
        """Wait for queued channel jobs to finish."""
        return self.pool.drain(timeout)

    def shutdown(self, wait=True, timeout=None):
        self.pool.shutdown(wait=wait, timeout=timeout)
        self.dedupe_guard.engine.dispose()


_engine: NotificationEngine | None = None
_engine_lock = threading.Lock()


def get_engine() -> NotificationEngine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = NotificationEngine()
        return _engine


def peek_engine() -> NotificationEngine | None:
    """The engine if one was created, without creating it."""
    return _engine


def set_engine(engine: NotificationEngine | None):
    global _engine
    with _engine_lock:
        _engine = engine


def reset_engine():
    """Shut down and forget the process-wide engine (useful for testing)."""
    global _engine
    with _engine_lock:
        engine, _engine = _engine, None
    if engine is not None:
        engine.shutdown(wait=True, timeout=5)
