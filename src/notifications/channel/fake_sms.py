"""Fake SMS adapter — records sent messages for testing."""

from notifications.channel.fake import FakeSender


class FakeSMSSender(FakeSender):
    """SMS sender that records messages in memory for test assertions."""

    channel = "SMS"
    prefix = "sms"
    failure_reason = "SMS delivery failed"

    @property
    def sent_messages(self):
        return self.sent
