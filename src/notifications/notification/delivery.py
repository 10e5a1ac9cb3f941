"""Channel delivery — bounded worker pool, retry policy and channel diagnostics.

Every (recipient, channel address) pair is one ``DeliveryJob``. Jobs run on
a fixed set of daemon threads fed by a bounded queue, so a burst of events
can never spawn unbounded work. When the queue is full the overflow policy
decides: ``reject_new`` refuses the job, ``drop_oldest`` evicts the oldest
waiting job to make room.

A job retries transient failures a bounded number of times with exponential
backoff. A push endpoint reported gone invalidates its subscription. Every
final outcome is logged and counted per channel.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass

import structlog
from notifications.channel import get_channel
from notifications.channel.port import DeliveryOutcome, Message, OutcomeStatus, Recipient
from notifications.notification.notification import NotificationChannel
from protean.utils.globals import current_domain

logger = structlog.get_logger(__name__)

REJECT_NEW = "reject_new"
DROP_OLDEST = "drop_oldest"


@dataclass(frozen=True)
class DeliveryJob:
    channel: str
    recipient: Recipient
    message: Message


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------
class ChannelDiagnostics:
    """Per-channel outcome counters for administrators."""

    def __init__(self):
        self._counts: dict[str, dict[str, int]] = {}
        self._lock = threading.Lock()

    def record(self, channel: str, status: OutcomeStatus):
        with self._lock:
            counts = self._counts.setdefault(channel, {s.value: 0 for s in OutcomeStatus})
            counts[status.value] += 1

    def count(self, channel: str, status: OutcomeStatus) -> int:
        with self._lock:
            return self._counts.get(channel, {}).get(status.value, 0)

    def snapshot(self) -> dict:
        with self._lock:
            return {channel: dict(counts) for channel, counts in self._counts.items()}

    def reset(self):
        with self._lock:
            self._counts.clear()


# ---------------------------------------------------------------------------
# Executing one job
# ---------------------------------------------------------------------------
class DeliveryExecutor:
    """Sends one job through its channel with bounded retry."""

    def __init__(self, diagnostics, retry_attempts=2, retry_backoff_seconds=0.5, channels=get_channel, sleep=time.sleep):
        self.diagnostics = diagnostics
        self.retry_attempts = retry_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self._channels = channels
        self._sleep = sleep

    def execute(self, job: DeliveryJob) -> DeliveryOutcome:
        sender = self._channels(job.channel)
        outcome = None
        for attempt in range(self.retry_attempts + 1):
            outcome = self._attempt(sender, job)
            if not outcome.retryable or attempt == self.retry_attempts:
                break
            delay = self.retry_backoff_seconds * (2**attempt)
            logger.warning(
                "Transient delivery failure, retrying",
                channel=job.channel,
                user_id=job.recipient.user_id,
                attempt=attempt + 1,
                delay=delay,
                error=outcome.error,
            )
            if delay:
                self._sleep(delay)

        self._record(job, outcome)
        return outcome

    def _attempt(self, sender, job):
        try:
            return sender.send(job.recipient, job.message)
        except Exception as exc:
            logger.exception("Channel sender raised", channel=job.channel, user_id=job.recipient.user_id)
            return DeliveryOutcome.transient(str(exc))

    def _record(self, job, outcome):
        self.diagnostics.record(job.channel, outcome.status)
        log = logger.bind(
            channel=job.channel,
            user_id=job.recipient.user_id,
            notification_id=job.message.notification_id,
            status=outcome.status.value,
        )

        if outcome.delivered:
            log.debug("Notification delivered", message_id=outcome.message_id)
        elif outcome.status == OutcomeStatus.UNAVAILABLE:
            log.info("Channel unavailable", error=outcome.error)
        elif outcome.invalidate_subscription:
            log.info("Push endpoint gone", endpoint=job.recipient.address)
            if job.channel == NotificationChannel.PUSH.value:
                self._invalidate_subscription(job.recipient.user_id, job.recipient.address, outcome.error)
        else:
            log.warning("Notification delivery failed", error=outcome.error)

    def _invalidate_subscription(self, user_id, endpoint, reason):
        from notifications.preference.subscription import InvalidatePushSubscription

        try:
            current_domain.process(
                InvalidatePushSubscription(user_id=str(user_id), endpoint=endpoint, reason=reason or "Endpoint gone"),
                asynchronous=False,
            )
        except Exception:
            logger.exception("Failed to invalidate push subscription", endpoint=endpoint)


# ---------------------------------------------------------------------------
# Worker pool
# ---------------------------------------------------------------------------
class DeliveryPool:
    """Fixed pool of daemon threads over a bounded job queue.

    Jobs run inside ``domain.domain_context()`` when a domain is given, so
    channel work can reach repositories and process commands.
    """

    def __init__(self, handler, workers=4, max_queue=1000, overflow_policy=REJECT_NEW, domain=None, name="delivery"):
        if overflow_policy not in (REJECT_NEW, DROP_OLDEST):
            raise ValueError(f"Unknown overflow policy: {overflow_policy}")

        self.handler = handler
        self.max_queue = max_queue
        self.overflow_policy = overflow_policy
        self.domain = domain

        self._queue = deque()
        self._cond = threading.Condition()
        self._active = 0
        self._closed = False
        self._counters = {"submitted": 0, "completed": 0, "errored": 0, "rejected": 0, "dropped": 0}

        self._threads = [
            threading.Thread(target=self._worker, name=f"{name}-{i}", daemon=True) for i in range(workers)
        ]
        for thread in self._threads:
            thread.start()

    def submit(self, job) -> bool:
        """Queue ``job``. Returns False if the pool refused it."""
        with self._cond:
            if self._closed:
                self._counters["rejected"] += 1
                return False

            if len(self._queue) >= self.max_queue:
                if self.overflow_policy == REJECT_NEW:
                    self._counters["rejected"] += 1
                    logger.warning("Delivery queue full, job rejected", queue_depth=len(self._queue))
                    return False
                dropped = self._queue.popleft()
                self._counters["dropped"] += 1
                logger.warning(
                    "Delivery queue full, oldest job dropped",
                    channel=dropped.channel,
                    user_id=dropped.recipient.user_id,
                )

            self._queue.append(job)
            self._counters["submitted"] += 1
            self._cond.notify_all()
            return True

    def _worker(self):
        while True:
            with self._cond:
                while not self._queue and not self._closed:
                    self._cond.wait()
                if not self._queue:
                    return
                job = self._queue.popleft()
                self._active += 1

            errored = False
            try:
                if self.domain is not None:
                    with self.domain.domain_context():
                        self.handler(job)
                else:
                    self.handler(job)
            except Exception:
                errored = True
                logger.exception("Delivery job failed", channel=getattr(job, "channel", None))
            finally:
                with self._cond:
                    self._active -= 1
                    self._counters["errored" if errored else "completed"] += 1
                    self._cond.notify_all()

    def drain(self, timeout: float | None = None) -> bool:
        """Block until every queued job has finished. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._queue and self._active == 0, timeout)

    def shutdown(self, wait: bool = True, timeout: float | None = None):
        """Stop accepting jobs; workers finish what is queued, then exit."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        if wait:
            for thread in self._threads:
                thread.join(timeout)

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> dict:
        with self._cond:
            return {
                **self._counters,
                "queued": len(self._queue),
                "active": self._active,
                "workers": len(self._threads),
                "max_queue": self.max_queue,
                "overflow_policy": self.overflow_policy,
            }
