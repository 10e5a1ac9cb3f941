"""Web Push adapter (VAPID) built on pywebpush."""

import json

import structlog
from notifications.channel.port import (
    ChannelSender,
    DeliveryOutcome,
    outcome_for_http_status,
)
from pywebpush import WebPushException, webpush

logger = structlog.get_logger(__name__)

# Push services answer 404/410 for subscriptions that no longer exist
GONE_STATUS_CODES = (404, 410)

PUSH_TTL_SECONDS = 86400


class WebPushSender(ChannelSender):
    channel = "Push"

    def __init__(self, vapid_private_key: str, vapid_claims_email: str, timeout: float = 10.0):
        self.vapid_private_key = vapid_private_key
        self.vapid_claims = {"sub": f"mailto:{vapid_claims_email}"}
        self.timeout = timeout

    def send(self, recipient, message):
        if not recipient.address:
            return DeliveryOutcome.unavailable("No push endpoint")

        keys = recipient.keys or {}
        subscription_info = {
            "endpoint": recipient.address,
            "keys": {"p256dh": keys.get("p256dh"), "auth": keys.get("auth")},
        }
        payload = json.dumps(
            {
                "title": message.subject,
                "body": message.body,
                "url": message.link,
                "notification_id": message.notification_id,
                "type": message.event_type,
            }
        )
        urgency = "high" if message.priority in ("High", "Critical") else "normal"

        try:
            response = webpush(
                subscription_info=subscription_info,
                data=payload,
                vapid_private_key=self.vapid_private_key,
                vapid_claims=dict(self.vapid_claims),
                ttl=PUSH_TTL_SECONDS,
                headers={"Urgency": urgency},
                timeout=self.timeout,
            )
        except WebPushException as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            logger.warning(
                "Web push failed",
                user_id=recipient.user_id,
                status_code=status_code,
                error=str(exc),
            )
            return outcome_for_http_status(status_code, error=str(exc), gone_codes=GONE_STATUS_CODES)
        except Exception as exc:
            logger.warning("Web push errored", user_id=recipient.user_id, error=str(exc))
            return DeliveryOutcome.transient(str(exc))

        return outcome_for_http_status(getattr(response, "status_code", 201))
