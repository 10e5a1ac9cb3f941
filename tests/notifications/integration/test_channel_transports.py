"""Integration tests for real channel transports against mocked HTTP services."""

import json

import httpx
import pytest
from notifications.channel import webpush_push
from notifications.channel.port import Message, OutcomeStatus, Recipient
from notifications.channel.sendgrid_email import SendGridEmailSender
from notifications.channel.telegram_chat import TELEGRAM_API_URL, TelegramChatSender
from notifications.channel.twilio_sms import TWILIO_API_URL, TwilioSMSSender
from notifications.channel.webpush_push import WebPushSender
from pywebpush import WebPushException

MESSAGE = Message(
    subject="Assigned to you: Letter L-100",
    body="You have been assigned as the responsible person.",
    event_type="ASSIGNMENT",
    priority="High",
    link="https://tracker.example.com/letters/L-100",
    notification_id="n-1",
)


def _client(handler, base_url, **kwargs):
    return httpx.Client(base_url=base_url, transport=httpx.MockTransport(handler), **kwargs)


# ---------------------------------------------------------------
# Telegram
# ---------------------------------------------------------------
class TestTelegramChatSender:
    def test_sends_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 77}})

        sender = TelegramChatSender("123:abc", client=_client(handler, TELEGRAM_API_URL))
        outcome = sender.send(Recipient("u1", "1001"), MESSAGE)

        assert outcome.delivered
        assert outcome.message_id == "77"
        assert requests[0].url.path == "/bot123:abc/sendMessage"
        body = json.loads(requests[0].content)
        assert body["chat_id"] == "1001"
        assert body["text"].startswith("Assigned to you: Letter L-100")
        assert MESSAGE.link in body["text"]

    def test_long_text_is_truncated(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

        sender = TelegramChatSender("t", client=_client(handler, TELEGRAM_API_URL))
        sender.send(Recipient("u1", "1001"), Message(subject="s", body="x" * 5000))
        assert len(captured["body"]["text"]) == 4096

    def test_blocked_bot_is_permanent(self):
        def handler(request):
            return httpx.Response(403, json={"ok": False, "description": "Forbidden: bot was blocked by the user"})

        sender = TelegramChatSender("t", client=_client(handler, TELEGRAM_API_URL))
        outcome = sender.send(Recipient("u1", "1001"), MESSAGE)
        assert outcome.status == OutcomeStatus.PERMANENT_FAILURE
        assert outcome.error == "Forbidden: bot was blocked by the user"

    def test_rate_limit_is_transient(self):
        sender = TelegramChatSender(
            "t", client=_client(lambda request: httpx.Response(429, json={"ok": False}), TELEGRAM_API_URL)
        )
        assert sender.send(Recipient("u1", "1001"), MESSAGE).retryable

    def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        sender = TelegramChatSender("t", client=_client(handler, TELEGRAM_API_URL))
        outcome = sender.send(Recipient("u1", "1001"), MESSAGE)
        assert outcome.status == OutcomeStatus.TRANSIENT_FAILURE
        assert outcome.error == "Request timed out"

    def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        sender = TelegramChatSender("t", client=_client(handler, TELEGRAM_API_URL))
        assert sender.send(Recipient("u1", "1001"), MESSAGE).retryable

    def test_missing_chat_id_is_unavailable(self):
        sender = TelegramChatSender("t", client=_client(lambda request: httpx.Response(200), TELEGRAM_API_URL))
        assert sender.send(Recipient("u1"), MESSAGE).status == OutcomeStatus.UNAVAILABLE


# ---------------------------------------------------------------
# Twilio
# ---------------------------------------------------------------
class TestTwilioSMSSender:
    def _sender(self, handler):
        return TwilioSMSSender(
            account_sid="AC123",
            auth_token="secret",
            from_number="+15550000",
            client=_client(handler, TWILIO_API_URL, auth=("AC123", "secret")),
        )

    def test_sends_sms(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM42"})

        outcome = self._sender(handler).send(Recipient("u1", "+15550001"), MESSAGE)

        assert outcome.delivered
        assert outcome.message_id == "SM42"
        assert requests[0].url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        form = dict(httpx.QueryParams(requests[0].content.decode()))
        assert form["To"] == "+15550001"
        assert form["From"] == "+15550000"
        assert form["Body"].startswith("Assigned to you: Letter L-100: ")
        assert requests[0].headers["Authorization"].startswith("Basic ")

    def test_invalid_number_is_permanent(self):
        def handler(request):
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        outcome = self._sender(handler).send(Recipient("u1", "+0"), MESSAGE)
        assert outcome.status == OutcomeStatus.PERMANENT_FAILURE
        assert outcome.error == "Invalid 'To' Phone Number"

    def test_server_error_is_transient(self):
        outcome = self._sender(lambda request: httpx.Response(503, text="unavailable")).send(
            Recipient("u1", "+15550001"), MESSAGE
        )
        assert outcome.retryable
        assert outcome.error == "HTTP 503"

    def test_missing_phone_is_unavailable(self):
        outcome = self._sender(lambda request: httpx.Response(201)).send(Recipient("u1"), MESSAGE)
        assert outcome.status == OutcomeStatus.UNAVAILABLE


# ---------------------------------------------------------------
# SendGrid
# ---------------------------------------------------------------
class FakeSendGridResponse:
    def __init__(self, status_code, headers=None):
        self.status_code = status_code
        self.headers = headers or {}


class FakeSendGridError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP Error {status_code}")
        self.status_code = status_code


class FakeSendGridClient:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.mails = []

    def send(self, mail):
        self.mails.append(mail)
        if self.error is not None:
            raise self.error
        return self.response


class TestSendGridEmailSender:
    def test_sends_mail(self):
        client = FakeSendGridClient(FakeSendGridResponse(202, {"X-Message-Id": "sg-1"}))
        sender = SendGridEmailSender("key", "tracker@example.com", client=client)

        outcome = sender.send(Recipient("u1", "u1@example.com"), MESSAGE)

        assert outcome.delivered
        assert outcome.message_id == "sg-1"
        mail = client.mails[0].get()
        assert mail["from"]["email"] == "tracker@example.com"
        assert mail["personalizations"][0]["to"][0]["email"] == "u1@example.com"
        assert mail["subject"] == MESSAGE.subject

    @pytest.mark.parametrize(
        "status_code,expected",
        [(400, OutcomeStatus.PERMANENT_FAILURE), (429, OutcomeStatus.TRANSIENT_FAILURE), (500, OutcomeStatus.TRANSIENT_FAILURE)],
    )
    def test_http_errors_are_classified(self, status_code, expected):
        sender = SendGridEmailSender("key", "tracker@example.com", client=FakeSendGridClient(error=FakeSendGridError(status_code)))
        assert sender.send(Recipient("u1", "u1@example.com"), MESSAGE).status == expected

    def test_network_error_is_transient(self):
        sender = SendGridEmailSender("key", "tracker@example.com", client=FakeSendGridClient(error=OSError("unreachable")))
        assert sender.send(Recipient("u1", "u1@example.com"), MESSAGE).retryable

    def test_missing_address_is_unavailable(self):
        sender = SendGridEmailSender("key", "tracker@example.com", client=FakeSendGridClient())
        assert sender.send(Recipient("u1"), MESSAGE).status == OutcomeStatus.UNAVAILABLE


# ---------------------------------------------------------------
# Web Push
# ---------------------------------------------------------------
class TestWebPushSender:
    RECIPIENT = Recipient("u1", "https://push.example.com/send/abc", {"p256dh": "pk", "auth": "ak"})

    def _sender(self):
        return WebPushSender("vapid-private-key", "ops@example.com", timeout=3.0)

    def test_sends_push(self, monkeypatch):
        calls = []

        def fake_webpush(**kwargs):
            calls.append(kwargs)
            return httpx.Response(201)

        monkeypatch.setattr(webpush_push, "webpush", fake_webpush)

        outcome = self._sender().send(self.RECIPIENT, MESSAGE)

        assert outcome.delivered
        call = calls[0]
        assert call["subscription_info"]["endpoint"] == "https://push.example.com/send/abc"
        assert call["subscription_info"]["keys"] == {"p256dh": "pk", "auth": "ak"}
        assert call["vapid_claims"] == {"sub": "mailto:ops@example.com"}
        assert call["headers"] == {"Urgency": "high"}
        assert call["timeout"] == 3.0
        assert json.loads(call["data"])["notification_id"] == "n-1"

    @pytest.mark.parametrize("status_code", [404, 410])
    def test_gone_endpoint(self, monkeypatch, status_code):
        def fake_webpush(**kwargs):
            raise WebPushException("Push failed", response=httpx.Response(status_code))

        monkeypatch.setattr(webpush_push, "webpush", fake_webpush)
        assert self._sender().send(self.RECIPIENT, MESSAGE).status == OutcomeStatus.GONE

    def test_push_service_error_is_transient(self, monkeypatch):
        def fake_webpush(**kwargs):
            raise WebPushException("Push failed", response=httpx.Response(502))

        monkeypatch.setattr(webpush_push, "webpush", fake_webpush)
        assert self._sender().send(self.RECIPIENT, MESSAGE).retryable

    def test_unexpected_error_is_transient(self, monkeypatch):
        def fake_webpush(**kwargs):
            raise ValueError("bad key")

        monkeypatch.setattr(webpush_push, "webpush", fake_webpush)
        assert self._sender().send(self.RECIPIENT, MESSAGE).retryable
