"""In-app sender — the notification is already in the inbox; this notifies listeners.

Listeners are the realtime hook (websocket fan-out, SSE, tests). A listener
that raises is logged and skipped; the in-app delivery still counts.
"""

import threading

import structlog
from notifications.channel.port import ChannelSender, DeliveryOutcome

logger = structlog.get_logger(__name__)


class InAppSender(ChannelSender):
    channel = "InApp"

    def __init__(self):
        self.sent: list[dict] = []
        self._listeners = []
        self._lock = threading.Lock()

    def add_listener(self, listener):
        """Register ``listener(user_id, payload)`` for every in-app delivery."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def send(self, recipient, message):
        payload = message.to_dict()
        with self._lock:
            self.sent.append({"user_id": recipient.user_id, **payload})
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(recipient.user_id, payload)
            except Exception as exc:
                logger.warning(
                    "In-app listener failed",
                    user_id=recipient.user_id,
                    error=str(exc),
                )

        return DeliveryOutcome.ok(message.notification_id)

    def reset(self):
        with self._lock:
            self.sent.clear()
            self._listeners.clear()
