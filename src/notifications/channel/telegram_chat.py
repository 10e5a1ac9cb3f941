"""Telegram Bot API chat adapter."""

import httpx
import structlog
from notifications.channel.port import (
    ChannelSender,
    DeliveryOutcome,
    outcome_for_http_status,
)

logger = structlog.get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"

# Telegram caps message text at 4096 characters
MAX_TEXT_LENGTH = 4096


class TelegramChatSender(ChannelSender):
    channel = "Chat"

    def __init__(self, bot_token: str, timeout: float = 10.0, client: httpx.Client | None = None):
        self.bot_token = bot_token
        self.client = client or httpx.Client(base_url=TELEGRAM_API_URL, timeout=timeout)

    def send(self, recipient, message):
        if not recipient.address:
            return DeliveryOutcome.unavailable("Recipient has no chat id")

        text = f"{message.subject}\n\n{message.body}" if message.body else message.subject
        if message.link:
            text = f"{text}\n{message.link}"

        try:
            response = self.client.post(
                f"/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id": recipient.address,
                    "text": text[:MAX_TEXT_LENGTH],
                    "disable_web_page_preview": True,
                },
            )
        except httpx.TimeoutException:
            logger.warning("Telegram request timed out", user_id=recipient.user_id)
            return DeliveryOutcome.transient("Request timed out")
        except httpx.HTTPError as exc:
            logger.warning("Telegram request failed", user_id=recipient.user_id, error=str(exc))
            return DeliveryOutcome.transient(str(exc))

        if response.is_success:
            result = response.json().get("result") or {}
            message_id = result.get("message_id")
            return DeliveryOutcome.ok(str(message_id) if message_id is not None else None)

        return outcome_for_http_status(response.status_code, error=_describe(response))

    def close(self):
        self.client.close()


def _describe(response):
    try:
        return response.json().get("description") or f"HTTP {response.status_code}"
    except ValueError:
        return f"HTTP {response.status_code}"
