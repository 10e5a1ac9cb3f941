"""Fake chat adapter — records sent chat messages for testing."""

from notifications.channel.fake import FakeSender


class FakeChatSender(FakeSender):
    """Chat sender that records messages in memory for test assertions."""

    channel = "Chat"
    prefix = "chat"
    failure_reason = "Chat delivery failed"

    @property
    def sent_messages(self):
        return self.sent
