"""Raised events — what the correspondence tracker hands to the engine.

A raised event is ephemeral: it is never stored, only turned into
Notification records and channel deliveries. Its payload is a tagged union
keyed by the event type; each variant carries only the fields that type
needs. Unknown event types are accepted with a free-form payload so that a
new event kind never prevents a notification from being written.
"""

from datetime import datetime

from notifications.notification.notification import EventType
from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Payload variants
# ---------------------------------------------------------------------------
class NewLetterPayload(BaseModel):
    letter_number: str | None = None
    organization: str | None = None


class CommentPayload(BaseModel):
    comment_id: str | None = None
    excerpt: str | None = None


class StatusPayload(BaseModel):
    previous_status: str | None = None
    new_status: str | None = None


class AssignmentPayload(BaseModel):
    assignee_id: str | None = None


class DeadlinePayload(BaseModel):
    deadline: datetime | None = None
    days_left: int | None = None


class SystemPayload(BaseModel):
    category: str | None = None


class GenericPayload(BaseModel):
    data: dict = Field(default_factory=dict)


EventPayload = (
    NewLetterPayload
    | CommentPayload
    | StatusPayload
    | AssignmentPayload
    | DeadlinePayload
    | SystemPayload
    | GenericPayload
)

PAYLOAD_REGISTRY: dict[str, type[BaseModel]] = {
    EventType.NEW_LETTER.value: NewLetterPayload,
    EventType.COMMENT.value: CommentPayload,
    EventType.STATUS.value: StatusPayload,
    EventType.ASSIGNMENT.value: AssignmentPayload,
    EventType.DEADLINE_URGENT.value: DeadlinePayload,
    EventType.DEADLINE_OVERDUE.value: DeadlinePayload,
    EventType.SYSTEM.value: SystemPayload,
}


def payload_type_for(event_type: str) -> type[BaseModel]:
    """Return the payload variant for an event type (GenericPayload if unknown)."""
    return PAYLOAD_REGISTRY.get(event_type, GenericPayload)


def is_known_event_type(event_type: str) -> bool:
    return event_type in PAYLOAD_REGISTRY


# ---------------------------------------------------------------------------
# Raised event
# ---------------------------------------------------------------------------
class RaisedEvent(BaseModel):
    """Something that happened in the tracker and may notify users."""

    type: str = Field(..., min_length=1, max_length=50)
    resource_id: str | None = None
    actor_id: str | None = None
    recipient_ids: list[str] = Field(default_factory=list)
    title: str = Field(..., min_length=1, max_length=500)
    body: str | None = None
    link: str | None = None
    dedupe_key: str | None = None
    dedupe_window_minutes: int | None = Field(default=None, ge=0)
    notify_actor: bool = False
    payload: EventPayload | None = None

    @model_validator(mode="before")
    @classmethod
    def _select_payload_variant(cls, data):
        if not isinstance(data, dict):
            return data
        event_type = data.get("type")
        if isinstance(event_type, EventType):
            data = {**data, "type": event_type.value}
            event_type = event_type.value
        payload = data.get("payload")
        payload_cls = payload_type_for(event_type)
        if payload is None:
            payload = {}
        if isinstance(payload, dict):
            if payload_cls is GenericPayload and "data" not in payload:
                payload = {"data": payload}
            data = {**data, "payload": payload_cls.model_validate(payload)}
        return data

    @model_validator(mode="after")
    def _normalize_recipients(self):
        seen = []
        for recipient_id in self.recipient_ids:
            if not recipient_id or recipient_id in seen:
                continue
            if recipient_id == self.actor_id and not self.notify_actor:
                continue
            seen.append(recipient_id)
        self.recipient_ids = seen
        return self

    @property
    def known_type(self) -> bool:
        return is_known_event_type(self.type)
