"""Base class for in-memory channel senders used by default and in tests."""

import threading
from uuid import uuid4

from notifications.channel.port import ChannelSender, DeliveryOutcome, OutcomeStatus


class FakeSender(ChannelSender):
    """Records delivered messages in memory; outcome is configurable.

    ``configure(should_succeed=False, failure_status=..., fail_times=n)``
    makes the next ``n`` sends fail (every send when ``fail_times`` is None)
    with the given status.
    """

    channel = ""
    prefix = "msg"
    failure_reason = "Delivery failed"

    def __init__(self):
        self.sent: list[dict] = []
        self.attempts = 0
        self._lock = threading.Lock()
        self.reset()

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str | None = None,
        failure_status: OutcomeStatus = OutcomeStatus.PERMANENT_FAILURE,
        fail_times: int | None = None,
    ):
        """Configure the fake adapter behavior for testing."""
        with self._lock:
            self.should_succeed = should_succeed
            self.failure_reason = failure_reason or type(self).failure_reason
            self.failure_status = failure_status
            self.fail_times = fail_times

    def send(self, recipient, message):
        with self._lock:
            self.attempts += 1
            if self._should_fail():
                return DeliveryOutcome(self.failure_status, error=self.failure_reason)

            message_id = f"{self.prefix}-{uuid4().hex[:12]}"
            self.sent.append(
                {
                    "message_id": message_id,
                    "user_id": recipient.user_id,
                    "to": recipient.address,
                    "subject": message.subject,
                    "body": message.body,
                    "event_type": message.event_type,
                    "priority": message.priority,
                    "notification_id": message.notification_id,
                    "data": dict(message.data),
                }
            )
        return DeliveryOutcome.ok(message_id)

    def _should_fail(self):
        if self.should_succeed:
            return False
        if self.fail_times is None:
            return True
        if self.fail_times > 0:
            self.fail_times -= 1
            return True
        return False

    def sent_to(self, user_id):
        return [m for m in self.sent if m["user_id"] == user_id]

    def reset(self):
        """Clear recorded messages and restore default behavior."""
        with self._lock:
            self.sent.clear()
            self.attempts = 0
            self.should_succeed = True
            self.failure_reason = type(self).failure_reason
            self.failure_status = OutcomeStatus.PERMANENT_FAILURE
            self.fail_times = None
