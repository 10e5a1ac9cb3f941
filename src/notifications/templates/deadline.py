"""Deadline templates — approaching and missed deadlines."""

from notifications.notification.notification import EventType


def _deadline_line(context):
    deadline = context.get("deadline")
    if deadline is None:
        return None
    return f"Deadline: {deadline:%Y-%m-%d}" if hasattr(deadline, "strftime") else f"Deadline: {deadline}"


class DeadlineUrgentTemplate:
    event_type = EventType.DEADLINE_URGENT.value

    @staticmethod
    def render(context: dict) -> dict:
        days_left = context.get("days_left")
        if days_left is None:
            when = "The deadline is approaching."
        elif days_left <= 0:
            when = "The deadline is today."
        else:
            when = f"{days_left} day(s) left until the deadline."
        lines = [context["title"], "", when]
        deadline = _deadline_line(context)
        if deadline:
            lines.append(deadline)
        return {"subject": f"Deadline approaching: {context['title']}", "body": "\n".join(lines)}


class DeadlineOverdueTemplate:
    event_type = EventType.DEADLINE_OVERDUE.value

    @staticmethod
    def render(context: dict) -> dict:
        days_left = context.get("days_left")
        overdue = f"Overdue by {abs(days_left)} day(s)." if days_left else "The deadline has passed."
        lines = [context["title"], "", overdue]
        deadline = _deadline_line(context)
        if deadline:
            lines.append(deadline)
        return {"subject": f"OVERDUE: {context['title']}", "body": "\n".join(lines)}
