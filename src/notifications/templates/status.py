"""Status change template."""

from notifications.notification.notification import EventType


class StatusTemplate:
    event_type = EventType.STATUS.value

    @staticmethod
    def render(context: dict) -> dict:
        previous = context.get("previous_status")
        new = context.get("new_status")
        if previous and new:
            change = f"Status changed from {previous} to {new}."
        elif new:
            change = f"Status changed to {new}."
        else:
            change = context.get("body") or ""
        return {"subject": context["title"], "body": f"{context['title']}\n\n{change}".rstrip()}
