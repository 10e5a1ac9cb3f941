"""Template registry — maps event types to template classes.

Each template renders the external-channel subject and body from an event
context (title, body, link plus the payload fields of that event type).
Unknown event types render through ``GenericTemplate``.
"""

from notifications.notification.notification import EventType
from notifications.templates.assignment import AssignmentTemplate
from notifications.templates.comment import CommentTemplate
from notifications.templates.deadline import DeadlineOverdueTemplate, DeadlineUrgentTemplate
from notifications.templates.letter import NewLetterTemplate
from notifications.templates.status import StatusTemplate
from notifications.templates.system import GenericTemplate, SystemTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    EventType.NEW_LETTER.value: NewLetterTemplate,
    EventType.COMMENT.value: CommentTemplate,
    EventType.STATUS.value: StatusTemplate,
    EventType.ASSIGNMENT.value: AssignmentTemplate,
    EventType.DEADLINE_URGENT.value: DeadlineUrgentTemplate,
    EventType.DEADLINE_OVERDUE.value: DeadlineOverdueTemplate,
    EventType.SYSTEM.value: SystemTemplate,
}


def get_template(event_type: str):
    """Look up a template class by event type string."""
    return TEMPLATE_REGISTRY.get(event_type, GenericTemplate)


def render_event(event) -> dict:
    """Render a ``RaisedEvent`` into ``{"subject", "body"}``."""
    context = {}
    if event.payload is not None:
        payload = event.payload.model_dump()
        context.update(payload.pop("data", None) or {})
        context.update(payload)
    context.update(
        title=event.title,
        body=event.body,
        link=event.link,
        resource_id=event.resource_id,
        actor_id=event.actor_id,
    )
    return get_template(event.type).render(context)
