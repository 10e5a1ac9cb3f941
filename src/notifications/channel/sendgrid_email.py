"""SendGrid email adapter."""

import structlog
from notifications.channel.port import (
    ChannelSender,
    DeliveryOutcome,
    outcome_for_http_status,
)
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

logger = structlog.get_logger(__name__)


class SendGridEmailSender(ChannelSender):
    channel = "Email"

    def __init__(self, api_key: str, from_email: str, timeout: float = 10.0, client=None):
        self.from_email = from_email
        if client is None:
            client = SendGridAPIClient(api_key)
            # python_http_client reads the per-request timeout from the client
            client.client.timeout = timeout
        self.client = client

    def send(self, recipient, message):
        if not recipient.address:
            return DeliveryOutcome.unavailable("Recipient has no email address")

        mail = Mail(
            from_email=self.from_email,
            to_emails=recipient.address,
            subject=message.subject,
            plain_text_content=message.body,
        )

        try:
            response = self.client.send(mail)
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            logger.warning(
                "SendGrid request failed",
                user_id=recipient.user_id,
                status_code=status_code,
                error=str(exc),
            )
            return outcome_for_http_status(status_code, error=str(exc))

        status_code = getattr(response, "status_code", None)
        headers = getattr(response, "headers", None) or {}
        return outcome_for_http_status(status_code, message_id=headers.get("X-Message-Id"))
