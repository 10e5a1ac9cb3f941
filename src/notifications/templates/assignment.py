"""Assignment template — sent to the new assignee."""

from notifications.notification.notification import EventType


class AssignmentTemplate:
    event_type = EventType.ASSIGNMENT.value

    @staticmethod
    def render(context: dict) -> dict:
        lines = [context["title"], "", "You have been assigned as the responsible person."]
        if context.get("body"):
            lines.extend(["", context["body"]])
        return {"subject": f"Assigned to you: {context['title']}", "body": "\n".join(lines)}
