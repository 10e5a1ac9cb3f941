"""Dispatcher — turns one raised event into notifications and channel jobs.

Each recipient runs through its own pipeline:

    profile snapshot → event-type mute → fingerprint → dedupe guard → delivery plan
        → quiet-hours / digest gate → persist Notification → channel jobs

The Notification is written before any channel is attempted and is never
rolled back by a channel outcome. Channel jobs go to the delivery pool and
run concurrently; the caller only waits for the records to be written. A
failure in one recipient's pipeline is logged and does not touch the others.
If the record cannot be written, the dedupe claim is released again.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from notifications.channel.port import Message, OutcomeStatus, Recipient
from notifications.notification.dedupe import fingerprint
from notifications.notification.delivery import DeliveryJob
from notifications.notification.digest import DigestItem
from notifications.notification.notification import (
    DeliveryMode,
    Notification,
    NotificationChannel,
)
from notifications.preference.subscription import active_subscriptions
from notifications.templates import render_event
from notifications.utils.logging import dispatch_context
from protean.utils.globals import current_domain

logger = structlog.get_logger(__name__)

_MISSING_CONTACT = {
    NotificationChannel.EMAIL.value: "missing_email",
    NotificationChannel.CHAT.value: "missing_chat_id",
    NotificationChannel.SMS.value: "missing_phone",
    NotificationChannel.PUSH.value: "no_push_subscription",
}


@dataclass
class DispatchReport:
    """What happened to one raised event, per recipient."""

    event_type: str
    created: dict = field(default_factory=dict)  # user_id -> notification_id
    deduplicated: list = field(default_factory=list)
    muted: list = field(default_factory=list)
    held: list = field(default_factory=list)
    suppressed: list = field(default_factory=list)
    unavailable: list = field(default_factory=list)  # (user_id, channel, reason)
    errors: list = field(default_factory=list)
    queued: int = 0
    rejected: int = 0

    def to_dict(self):
        return {
            "event_type": self.event_type,
            "created": dict(self.created),
            "deduplicated": list(self.deduplicated),
            "muted": list(self.muted),
            "held": list(self.held),
            "suppressed": list(self.suppressed),
            "unavailable": [list(u) for u in self.unavailable],
            "errors": list(self.errors),
            "queued": self.queued,
            "rejected": self.rejected,
        }


class Dispatcher:
    def __init__(
        self,
        settings,
        dedupe_guard,
        preference_cache,
        preference_loader,
        resolver,
        quiet_hours,
        digest_scheduler,
        pool,
        executor,
        directory,
        diagnostics,
        clock=None,
    ):
        self.settings = settings
        self.dedupe_guard = dedupe_guard
        self.preference_cache = preference_cache
        self.preference_loader = preference_loader
        self.resolver = resolver
        self.quiet_hours = quiet_hours
        self.digest_scheduler = digest_scheduler
        self.pool = pool
        self.executor = executor
        self.directory = directory
        self.diagnostics = diagnostics
        self._clock = clock or (lambda: datetime.now(UTC))

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    def dispatch(self, event, now: datetime | None = None) -> DispatchReport:
        now = now or self._clock()
        report = DispatchReport(event_type=event.type)

        if not event.known_type:
            logger.warning("Unknown event type, using default plan", event_type=event.type)

        rendered = render_event(event)
        window = (
            event.dedupe_window_minutes
            if event.dedupe_window_minutes is not None
            else self.settings.dedupe_window_for(event.type)
        )

        with dispatch_context(event_type=event.type, resource_id=event.resource_id):
            for recipient_id in event.recipient_ids:
                try:
                    self._dispatch_to(event, recipient_id, rendered, window, now, report)
                except Exception:
                    report.errors.append(recipient_id)
                    logger.exception("Dispatch failed for recipient", user_id=recipient_id)

        logger.info(
            "Event dispatched",
            event_type=event.type,
            resource_id=event.resource_id,
            recipients=len(event.recipient_ids),
            created=len(report.created),
            deduplicated=len(report.deduplicated),
            muted=len(report.muted),
            held=len(report.held),
            suppressed=len(report.suppressed),
            queued=report.queued,
        )
        return report

    # -------------------------------------------------------------------
    # Per-recipient pipeline
    # -------------------------------------------------------------------
    def _dispatch_to(self, event, recipient_id, rendered, window, now, report):
        profile = self.preference_cache.get(recipient_id, self.preference_loader)
        if profile is not None and not profile.event_enabled(event.type):
            logger.debug("Event type muted by recipient", user_id=recipient_id)
            report.muted.append(recipient_id)
            return

        fp = fingerprint(event.type, event.resource_id, recipient_id, event.dedupe_key)
        if not self.dedupe_guard.should_deliver(fp, window, now):
            report.deduplicated.append(recipient_id)
            return

        try:
            notification, plan, mode, carried_over = self._persist(event, recipient_id, profile, fp, now)
        except Exception:
            # Nothing persisted; free the claim so a retry is not a duplicate
            self.dedupe_guard.release(fp)
            raise

        notification_id = str(notification.id)
        report.created[recipient_id] = notification_id

        message = Message(
            subject=rendered["subject"],
            body=rendered["body"],
            event_type=event.type,
            priority=plan.priority.value,
            link=event.link,
            notification_id=notification_id,
            data=event.payload.model_dump(mode="json") if event.payload is not None else {},
        )

        if NotificationChannel.IN_APP in plan.channels:
            self._submit(DeliveryJob(NotificationChannel.IN_APP.value, Recipient(user_id=recipient_id), message), report)

        external_values = [c for c in plan.channel_values() if c != NotificationChannel.IN_APP.value]

        if mode == DeliveryMode.DIGEST:
            self.digest_scheduler.hold(
                profile,
                DigestItem(
                    notification_id=notification_id,
                    user_id=recipient_id,
                    event_type=event.type,
                    title=event.title,
                    body=event.body,
                    priority=plan.priority.value,
                    channels=tuple(external_values),
                    resource_id=event.resource_id,
                    link=event.link,
                    created_at=now,
                    carried_over=carried_over,
                ),
                now,
            )
            report.held.append(recipient_id)
            return

        if mode == DeliveryMode.SUPPRESSED:
            logger.info(
                "External delivery suppressed by quiet hours",
                user_id=recipient_id,
                notification_id=notification_id,
                priority=plan.priority.value,
            )
            report.suppressed.append(recipient_id)
            return

        for channel in external_values:
            for job in self.jobs_for(recipient_id, channel, message, report):
                self._submit(job, report)

    def _persist(self, event, recipient_id, profile, fp, now):
        plan = self.resolver.resolve(event.type, profile)

        mode = DeliveryMode.IMMEDIATE
        carried_over = False
        if plan.external_channels:
            if self.quiet_hours.is_suppressed(now, profile, plan.priority, event.type):
                if self.digest_scheduler.accepts(profile):
                    mode, carried_over = DeliveryMode.DIGEST, True
                else:
                    mode = DeliveryMode.SUPPRESSED
            elif self.digest_scheduler.should_hold(profile, plan.priority):
                mode = DeliveryMode.DIGEST

        notification = Notification.create(
            user_id=recipient_id,
            notification_type=event.type,
            title=event.title,
            body=event.body,
            priority=plan.priority.value,
            channels=plan.channel_values(),
            delivery_mode=mode.value,
            resource_id=event.resource_id,
            actor_id=event.actor_id,
            link=event.link,
            dedupe_fingerprint=fp,
            created_at=now,
        )
        current_domain.repository_for(Notification).add(notification)
        return notification, plan, mode, carried_over

    # -------------------------------------------------------------------
    # Channel jobs
    # -------------------------------------------------------------------
    def jobs_for(self, user_id, channel, message, report=None) -> list:
        """One job per address the user has on ``channel``.

        Push gets one job per active subscription. A user without an
        address on the channel gets no job; that is logged and counted as
        unavailable.
        """
        if channel == NotificationChannel.PUSH.value:
            recipients = [
                Recipient(user_id=user_id, address=s.endpoint, keys=s.get_keys()) for s in active_subscriptions(user_id)
            ]
        else:
            address = self.directory.lookup(user_id).address_for(channel)
            recipients = [Recipient(user_id=user_id, address=address)] if address else []

        if not recipients:
            reason = _MISSING_CONTACT.get(channel, "no_address")
            self.diagnostics.record(channel, OutcomeStatus.UNAVAILABLE)
            logger.info("Channel unavailable for recipient", user_id=user_id, channel=channel, reason=reason)
            if report is not None:
                report.unavailable.append((user_id, channel, reason))
            return []

        return [DeliveryJob(channel, recipient, message) for recipient in recipients]

    def _submit(self, job, report):
        if self.pool.submit(job):
            report.queued += 1
        else:
            report.rejected += 1
            logger.warning(
                "Delivery job rejected",
                channel=job.channel,
                user_id=job.recipient.user_id,
                notification_id=job.message.notification_id,
            )

    def deliver_now(self, user_id, channel, message) -> list:
        """Send ``message`` synchronously on ``channel``; used for digests."""
        return [self.executor.execute(job) for job in self.jobs_for(user_id, channel, message)]
