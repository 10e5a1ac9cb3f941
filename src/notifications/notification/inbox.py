"""Inbox commands and queries — read state, deletion, retention, listing.

Every command is scoped to the owning user: ids that belong to someone else
are skipped silently, the same as ids that do not exist.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog
from notifications.domain import notifications
from notifications.notification.notification import Notification
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Identifier, Integer, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
_BATCH = 500


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
@dataclass
class NotificationPage:
    items: list = field(default_factory=list)
    total: int = 0
    unread: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.total else 0

    def to_dict(self):
        return {
            "notifications": [n.to_dict() for n in self.items],
            "total": self.total,
            "unread": self.unread,
            "page": self.page,
            "page_size": self.page_size,
            "pages": self.pages,
        }


def _query(**criteria):
    repo = current_domain.repository_for(Notification)
    return repo._dao.query.filter(**criteria)


def _fetch_all(query):
    items, offset = [], 0
    while True:
        result = query.offset(offset).limit(_BATCH).all()
        items.extend(result.items)
        offset += _BATCH
        if not result.items or offset >= result.total:
            return items


def unread_count(user_id) -> int:
    return _query(user_id=str(user_id), read=False).all().total


def list_notifications(
    user_id,
    read=None,
    notification_type=None,
    resource_id=None,
    page=1,
    page_size=DEFAULT_PAGE_SIZE,
) -> NotificationPage:
    """One page of a user's inbox, newest first."""
    page = max(int(page or 1), 1)
    page_size = min(max(int(page_size or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

    criteria = {"user_id": str(user_id)}
    if read is not None:
        criteria["read"] = bool(read)
    if notification_type:
        criteria["notification_type"] = notification_type
    if resource_id:
        criteria["resource_id"] = resource_id

    result = _query(**criteria).order_by("-created_at").offset((page - 1) * page_size).limit(page_size).all()

    return NotificationPage(
        items=list(result.items),
        total=result.total,
        unread=unread_count(user_id),
        page=page,
        page_size=page_size,
    )


def _owned(user_id, notification_ids, include_all):
    if include_all:
        return _fetch_all(_query(user_id=str(user_id)))

    repo = current_domain.repository_for(Notification)
    owned = []
    for notification_id in dict.fromkeys(notification_ids):
        try:
            notification = repo.get(notification_id)
        except ObjectNotFoundError:
            continue
        if str(notification.user_id) == str(user_id):
            owned.append(notification)
    return owned


def _parse_ids(raw):
    if not raw:
        return []
    try:
        ids = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError({"notification_ids": ["Must be a JSON list of ids"]}) from None
    if not isinstance(ids, list):
        raise ValidationError({"notification_ids": ["Must be a JSON list of ids"]})
    return [str(i) for i in ids]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@notifications.command(part_of="Notification")
class MarkNotificationsRead:
    user_id: Identifier(required=True)
    notification_ids: Text()  # JSON list
    all_notifications: Boolean(default=False)


@notifications.command(part_of="Notification")
class DeleteNotifications:
    user_id: Identifier(required=True)
    notification_ids: Text()  # JSON list
    all_notifications: Boolean(default=False)


@notifications.command(part_of="Notification")
class PurgeNotifications:
    """Retention sweep: delete read notifications older than the cutoff."""

    older_than_days: Integer(required=True, min_value=0)


@notifications.command_handler(part_of=Notification)
class InboxCommandHandler:
    @handle(MarkNotificationsRead)
    def mark_read(self, command: MarkNotificationsRead):
        ids = _parse_ids(command.notification_ids)
        if not ids and not command.all_notifications:
            raise ValidationError({"notification_ids": ["Provide notification ids or set all"]})

        repo = current_domain.repository_for(Notification)
        count = 0
        for notification in _owned(command.user_id, ids, command.all_notifications):
            if notification.mark_read():
                repo.add(notification)
                count += 1

        logger.info("Notifications marked read", user_id=str(command.user_id), count=count)
        return count

    @handle(DeleteNotifications)
    def delete(self, command: DeleteNotifications):
        ids = _parse_ids(command.notification_ids)
        if not ids and not command.all_notifications:
            raise ValidationError({"notification_ids": ["Provide notification ids or set all"]})

        repo = current_domain.repository_for(Notification)
        count = 0
        for notification in _owned(command.user_id, ids, command.all_notifications):
            repo._dao.delete(notification)
            count += 1

        logger.info("Notifications deleted", user_id=str(command.user_id), count=count)
        return count

    @handle(PurgeNotifications)
    def purge(self, command: PurgeNotifications):
        cutoff = datetime.now(UTC) - timedelta(days=command.older_than_days)
        repo = current_domain.repository_for(Notification)

        count = 0
        for notification in _fetch_all(_query(read=True)):
            created_at = notification.created_at
            if created_at is None:
                continue
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=UTC)
            if created_at < cutoff:
                repo._dao.delete(notification)
                count += 1

        logger.info("Read notifications purged", older_than_days=command.older_than_days, count=count)
        return count
