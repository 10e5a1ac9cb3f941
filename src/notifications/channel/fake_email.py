"""Fake email adapter — records sent emails for testing."""

from notifications.channel.fake import FakeSender


class FakeEmailSender(FakeSender):
    """Email sender that records messages in memory for test assertions."""

    channel = "Email"
    prefix = "email"
    failure_reason = "Email delivery failed"

    @property
    def sent_emails(self):
        return self.sent
