"""Twilio SMS adapter (REST API over httpx)."""

import httpx
import structlog
from notifications.channel.port import (
    ChannelSender,
    DeliveryOutcome,
    outcome_for_http_status,
)

logger = structlog.get_logger(__name__)

TWILIO_API_URL = "https://api.twilio.com"

MAX_SMS_LENGTH = 1600


class TwilioSMSSender(ChannelSender):
    channel = "SMS"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.account_sid = account_sid
        self.from_number = from_number
        self.client = client or httpx.Client(
            base_url=TWILIO_API_URL,
            auth=(account_sid, auth_token),
            timeout=timeout,
        )

    def send(self, recipient, message):
        if not recipient.address:
            return DeliveryOutcome.unavailable("Recipient has no phone number")

        body = f"{message.subject}: {message.body}" if message.body else message.subject

        try:
            response = self.client.post(
                f"/2010-04-01/Accounts/{self.account_sid}/Messages.json",
                data={"To": recipient.address, "From": self.from_number, "Body": body[:MAX_SMS_LENGTH]},
            )
        except httpx.TimeoutException:
            logger.warning("Twilio request timed out", user_id=recipient.user_id)
            return DeliveryOutcome.transient("Request timed out")
        except httpx.HTTPError as exc:
            logger.warning("Twilio request failed", user_id=recipient.user_id, error=str(exc))
            return DeliveryOutcome.transient(str(exc))

        if response.is_success:
            return DeliveryOutcome.ok(response.json().get("sid"))

        try:
            error = response.json().get("message")
        except ValueError:
            error = None
        return outcome_for_http_status(response.status_code, error=error)

    def close(self):
        self.client.close()
