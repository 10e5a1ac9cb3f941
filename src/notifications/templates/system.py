"""System and fallback templates."""

from notifications.notification.notification import EventType


class SystemTemplate:
    event_type = EventType.SYSTEM.value

    @staticmethod
    def render(context: dict) -> dict:
        category = context.get("category")
        subject = f"[{category}] {context['title']}" if category else context["title"]
        return {"subject": subject, "body": context.get("body") or context["title"]}


class GenericTemplate:
    """Used for event types without a dedicated template."""

    event_type = None

    @staticmethod
    def render(context: dict) -> dict:
        return {"subject": context["title"], "body": context.get("body") or context["title"]}
