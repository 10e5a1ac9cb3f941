"""Fake push notification adapter — records sent pushes for testing."""

from notifications.channel.fake import FakeSender


class FakePushSender(FakeSender):
    """Push sender that records notifications in memory for test assertions.

    The recorded ``to`` is the subscription endpoint.
    """

    channel = "Push"
    prefix = "push"
    failure_reason = "Push delivery failed"

    @property
    def sent_pushes(self):
        return self.sent
