"""Digest template — one batched message for everything held since the last flush.

Items are grouped by the resource they refer to; items without a resource
go under "General".
"""

PREVIEW_LENGTH = 150

_TYPE_LABELS = {
    "NEW_LETTER": "Letter",
    "COMMENT": "Comment",
    "STATUS": "Status",
    "ASSIGNMENT": "Assignment",
    "DEADLINE_URGENT": "Deadline",
    "DEADLINE_OVERDUE": "Overdue",
    "SYSTEM": "System",
}

_PERIOD_LABELS = {"Daily": "today", "Weekly": "this week"}


def _preview(text):
    if not text:
        return None
    return text if len(text) <= PREVIEW_LENGTH else text[:PREVIEW_LENGTH] + "..."


class DigestTemplate:
    @staticmethod
    def render(items, frequency: str) -> dict:
        count = len(items)
        noun = "notification" if count == 1 else "notifications"
        period = _PERIOD_LABELS.get(frequency, "recently")

        groups: dict[str, list] = {}
        for item in items:
            groups.setdefault(item.resource_id or "", []).append(item)

        lines = [f"You have {count} new {noun} {period}."]
        for resource_id, group in groups.items():
            lines.append("")
            lines.append(f"== {resource_id} ==" if resource_id else "== General ==")
            for item in group:
                label = _TYPE_LABELS.get(item.event_type, item.event_type)
                lines.append(f"- [{label}] {item.title}")
                preview = _preview(item.body)
                if preview:
                    lines.append(f"  {preview}")

        return {
            "subject": f"Notification digest: {count} new",
            "body": "\n".join(lines),
        }
