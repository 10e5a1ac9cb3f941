"""Sender for channels that are disabled or missing credentials."""

from notifications.channel.port import ChannelSender, DeliveryOutcome


class UnavailableSender(ChannelSender):
    def __init__(self, channel: str, reason: str = "Channel not configured"):
        self.channel = channel
        self.reason = reason

    def send(self, recipient, message):
        return DeliveryOutcome.unavailable(self.reason)
