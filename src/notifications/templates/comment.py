"""Comment template — sent when someone comments on a resource."""

from notifications.notification.notification import EventType

EXCERPT_LENGTH = 200


class CommentTemplate:
    event_type = EventType.COMMENT.value

    @staticmethod
    def render(context: dict) -> dict:
        excerpt = context.get("excerpt") or context.get("body") or ""
        if len(excerpt) > EXCERPT_LENGTH:
            excerpt = excerpt[:EXCERPT_LENGTH] + "..."
        body = f"{context['title']}\n\n“{excerpt}”" if excerpt else context["title"]
        return {"subject": context["title"], "body": body}
