"""New letter template — sent when a letter is registered."""

from notifications.notification.notification import EventType


class NewLetterTemplate:
    event_type = EventType.NEW_LETTER.value

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("letter_number")
        organization = context.get("organization")
        subject = f"New letter #{number}" if number else context["title"]
        lines = [context["title"]]
        if organization:
            lines.append(f"From: {organization}")
        if context.get("body"):
            lines.append("")
            lines.append(context["body"])
        return {"subject": subject, "body": "\n".join(lines)}
