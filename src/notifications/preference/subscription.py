"""PushSubscription aggregate + commands — web-push endpoints registered by clients.

A subscription belongs to exactly one user. It is created when a client
subscribes, soft-invalidated when a send reports the endpoint gone, and
deleted on explicit unsubscribe. Registering an endpoint that already exists
for the user refreshes its keys and clears any invalidation.
"""

import json
from datetime import UTC, datetime

import structlog
from notifications.domain import notifications
from notifications.preference.events import (
    PushSubscriptionInvalidated,
    PushSubscriptionRegistered,
)
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class PushSubscription:
    """A push endpoint with the keys needed to encrypt payloads for it."""

    user_id: Identifier(required=True)
    endpoint: String(required=True, max_length=2000)
    keys: Text()  # JSON, e.g. {"p256dh": ..., "auth": ...}
    expires_at: DateTime()

    invalidated_at: DateTime()
    invalidation_reason: String(max_length=500)

    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def register(cls, user_id, endpoint, keys=None, expires_at=None):
        if not endpoint:
            raise ValidationError({"endpoint": ["Endpoint is required"]})

        now = datetime.now(UTC)
        subscription = cls(
            user_id=user_id,
            endpoint=endpoint,
            keys=json.dumps(keys or {}),
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
        subscription._raise_registered(now)
        return subscription

    def refresh(self, keys=None, expires_at=None):
        """Re-registration of a known endpoint: new keys, new expiry, valid again."""
        now = datetime.now(UTC)
        self.keys = json.dumps(keys or {})
        self.expires_at = expires_at
        self.invalidated_at = None
        self.invalidation_reason = None
        self.updated_at = now
        self._raise_registered(now)

    def invalidate(self, reason):
        if self.invalidated_at is not None:
            return False

        now = datetime.now(UTC)
        self.invalidated_at = now
        self.invalidation_reason = reason
        self.updated_at = now

        self.raise_(
            PushSubscriptionInvalidated(
                subscription_id=str(self.id),
                user_id=str(self.user_id),
                endpoint=self.endpoint,
                reason=reason,
                invalidated_at=now,
            )
        )
        return True

    def _raise_registered(self, now):
        self.raise_(
            PushSubscriptionRegistered(
                subscription_id=str(self.id),
                user_id=str(self.user_id),
                endpoint=self.endpoint,
                registered_at=now,
            )
        )

    def get_keys(self):
        return json.loads(self.keys) if self.keys else {}

    def is_active(self, now=None):
        if self.invalidated_at is not None:
            return False
        if self.expires_at is None:
            return True
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at > now


def _find(user_id=None, endpoint=None):
    criteria = {}
    if user_id is not None:
        criteria["user_id"] = str(user_id)
    if endpoint is not None:
        criteria["endpoint"] = endpoint
    repo = current_domain.repository_for(PushSubscription)
    return repo._dao.query.filter(**criteria).all().items


def active_subscriptions(user_id, now=None):
    """Subscriptions that may receive a push right now."""
    return [s for s in _find(user_id=user_id) if s.is_active(now)]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@notifications.command(part_of="PushSubscription")
class RegisterPushSubscription:
    user_id: Identifier(required=True)
    endpoint: String(required=True, max_length=2000)
    keys: Text()  # JSON object
    expires_at: DateTime()


@notifications.command(part_of="PushSubscription")
class UnregisterPushSubscription:
    user_id: Identifier(required=True)
    endpoint: String(required=True, max_length=2000)


@notifications.command(part_of="PushSubscription")
class InvalidatePushSubscription:
    """Issued by the dispatcher when a push send reports the endpoint gone."""

    user_id: Identifier(required=True)
    endpoint: String(required=True, max_length=2000)
    reason: String(required=True, max_length=500)


@notifications.command_handler(part_of=PushSubscription)
class ManagePushSubscriptionsHandler:
    @handle(RegisterPushSubscription)
    def register(self, command: RegisterPushSubscription):
        keys = json.loads(command.keys) if command.keys else {}
        repo = current_domain.repository_for(PushSubscription)

        existing = _find(user_id=command.user_id, endpoint=command.endpoint)
        if existing:
            subscription = existing[0]
            subscription.refresh(keys=keys, expires_at=command.expires_at)
        else:
            subscription = PushSubscription.register(
                user_id=str(command.user_id),
                endpoint=command.endpoint,
                keys=keys,
                expires_at=command.expires_at,
            )
        repo.add(subscription)
        return str(subscription.id)

    @handle(UnregisterPushSubscription)
    def unregister(self, command: UnregisterPushSubscription):
        repo = current_domain.repository_for(PushSubscription)
        removed = 0
        for subscription in _find(user_id=command.user_id, endpoint=command.endpoint):
            repo._dao.delete(subscription)
            removed += 1
        return removed

    @handle(InvalidatePushSubscription)
    def invalidate(self, command: InvalidatePushSubscription):
        repo = current_domain.repository_for(PushSubscription)
        for subscription in _find(user_id=command.user_id, endpoint=command.endpoint):
            if subscription.invalidate(command.reason):
                repo.add(subscription)
                logger.info(
                    "Push subscription invalidated",
                    subscription_id=str(subscription.id),
                    user_id=str(subscription.user_id),
                    reason=command.reason,
                )
