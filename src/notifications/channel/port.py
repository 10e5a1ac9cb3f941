"""Channel sender port — the one interface every delivery adapter implements.

A sender takes a ``Recipient`` (who, and the channel-specific address) and a
rendered ``Message``, and reports what happened as a ``DeliveryOutcome``.
Senders do not raise for delivery problems; they classify them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class OutcomeStatus(Enum):
    DELIVERED = "Delivered"
    TRANSIENT_FAILURE = "TransientFailure"
    PERMANENT_FAILURE = "PermanentFailure"
    UNAVAILABLE = "Unavailable"
    GONE = "Gone"


@dataclass(frozen=True)
class Recipient:
    """Where a message goes on one channel.

    ``address`` is the email address, chat id, phone number or push
    endpoint; ``keys`` carries push encryption keys.
    """

    user_id: str
    address: str | None = None
    keys: dict | None = None


@dataclass(frozen=True)
class Message:
    """A rendered notification ready for a channel."""

    subject: str
    body: str
    event_type: str = ""
    priority: str = "Normal"
    link: str | None = None
    notification_id: str | None = None
    data: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "notification_id": self.notification_id,
            "event_type": self.event_type,
            "priority": self.priority,
            "subject": self.subject,
            "body": self.body,
            "link": self.link,
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class DeliveryOutcome:
    status: OutcomeStatus
    error: str | None = None
    message_id: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == OutcomeStatus.DELIVERED

    @property
    def retryable(self) -> bool:
        return self.status == OutcomeStatus.TRANSIENT_FAILURE

    @property
    def invalidate_subscription(self) -> bool:
        return self.status == OutcomeStatus.GONE

    @classmethod
    def ok(cls, message_id=None):
        return cls(OutcomeStatus.DELIVERED, message_id=message_id)

    @classmethod
    def transient(cls, error):
        return cls(OutcomeStatus.TRANSIENT_FAILURE, error=error)

    @classmethod
    def permanent(cls, error):
        return cls(OutcomeStatus.PERMANENT_FAILURE, error=error)

    @classmethod
    def unavailable(cls, error="Channel not configured"):
        return cls(OutcomeStatus.UNAVAILABLE, error=error)

    @classmethod
    def gone(cls, error="Endpoint gone"):
        return cls(OutcomeStatus.GONE, error=error)


def outcome_for_http_status(status_code, error=None, gone_codes=(), message_id=None):
    """Classify an HTTP response status into a delivery outcome.

    2xx is delivered; 429 and 5xx are worth retrying; codes in
    ``gone_codes`` mean the address no longer exists; anything else is
    permanent.
    """
    if status_code is None:
        return DeliveryOutcome.transient(error or "No response")
    if 200 <= status_code < 300:
        return DeliveryOutcome.ok(message_id)
    detail = error or f"HTTP {status_code}"
    if status_code in gone_codes:
        return DeliveryOutcome.gone(detail)
    if status_code == 429 or status_code >= 500:
        return DeliveryOutcome.transient(detail)
    return DeliveryOutcome.permanent(detail)


class ChannelSender(ABC):
    """Abstract interface for channel delivery adapters."""

    channel: str = ""

    @abstractmethod
    def send(self, recipient: Recipient, message: Message) -> DeliveryOutcome:
        """Deliver ``message`` to ``recipient`` and report the outcome."""
        ...
