"""Channel adapter registry — pluggable notification delivery channels.

Provides singleton access to channel senders. Fake senders are used by
default; real transports (SendGrid, Telegram, Twilio, Web Push) are selected
per channel through ``NOTIFICATIONS_<CHANNEL>_ADAPTER``. A channel that is
``disabled``, or whose real transport lacks credentials, gets an
``UnavailableSender``.
"""

import structlog
from notifications.channel.unavailable import UnavailableSender
from notifications.notification.notification import NotificationChannel
from notifications.settings import get_settings

logger = structlog.get_logger(__name__)

_channel_instances: dict[str, object] = {}

DISABLED = "disabled"
FAKE = "fake"


def _build_email(adapter, settings):
    if adapter == FAKE:
        from notifications.channel.fake_email import FakeEmailSender

        return FakeEmailSender()
    if adapter == "sendgrid" and settings.sendgrid_api_key and settings.email_from:
        from notifications.channel.sendgrid_email import SendGridEmailSender

        return SendGridEmailSender(
            api_key=settings.sendgrid_api_key,
            from_email=settings.email_from,
            timeout=settings.channel_timeout_seconds,
        )
    return None


def _build_chat(adapter, settings):
    if adapter == FAKE:
        from notifications.channel.fake_chat import FakeChatSender

        return FakeChatSender()
    if adapter == "telegram" and settings.telegram_bot_token:
        from notifications.channel.telegram_chat import TelegramChatSender

        return TelegramChatSender(
            bot_token=settings.telegram_bot_token,
            timeout=settings.channel_timeout_seconds,
        )
    return None


def _build_sms(adapter, settings):
    if adapter == FAKE:
        from notifications.channel.fake_sms import FakeSMSSender

        return FakeSMSSender()
    if adapter == "twilio" and settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from:
        from notifications.channel.twilio_sms import TwilioSMSSender

        return TwilioSMSSender(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from,
            timeout=settings.channel_timeout_seconds,
        )
    return None


def _build_push(adapter, settings):
    if adapter == FAKE:
        from notifications.channel.fake_push import FakePushSender

        return FakePushSender()
    if adapter == "webpush" and settings.vapid_private_key and settings.vapid_claims_email:
        from notifications.channel.webpush_push import WebPushSender

        return WebPushSender(
            vapid_private_key=settings.vapid_private_key,
            vapid_claims_email=settings.vapid_claims_email,
            timeout=settings.channel_timeout_seconds,
        )
    return None


_BUILDERS = {
    NotificationChannel.EMAIL.value: ("email_adapter", _build_email),
    NotificationChannel.CHAT.value: ("chat_adapter", _build_chat),
    NotificationChannel.SMS.value: ("sms_adapter", _build_sms),
    NotificationChannel.PUSH.value: ("push_adapter", _build_push),
}


def _build(channel_type):
    if channel_type == NotificationChannel.IN_APP.value:
        from notifications.channel.in_app import InAppSender

        return InAppSender()

    if channel_type not in _BUILDERS:
        raise ValueError(f"Unknown channel type: {channel_type}")

    settings = get_settings()
    setting_name, builder = _BUILDERS[channel_type]
    adapter = getattr(settings, setting_name)
    if adapter == DISABLED:
        return UnavailableSender(channel_type, "Channel disabled")

    sender = builder(adapter, settings)
    if sender is None:
        logger.info(
            "Channel unavailable",
            channel=channel_type,
            adapter=adapter,
            reason="unknown adapter or missing credentials",
        )
        return UnavailableSender(channel_type, f"Adapter {adapter!r} not configured")
    return sender


def get_channel(channel_type: str):
    """Return the configured sender (singleton per channel type).

    Args:
        channel_type: One of NotificationChannel enum values ("InApp", "Email", "Chat", "SMS", "Push")
    """
    if channel_type not in _channel_instances:
        _channel_instances[channel_type] = _build(channel_type)
    return _channel_instances[channel_type]


def register_channel(channel_type: str, sender):
    """Install ``sender`` for ``channel_type``, replacing any configured one."""
    NotificationChannel(channel_type)
    _channel_instances[channel_type] = sender


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()
