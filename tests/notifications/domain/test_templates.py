"""Tests for event and digest templates."""

from datetime import UTC, datetime

from notifications.notification.digest import DigestItem
from notifications.notification.raised_event import RaisedEvent
from notifications.templates import get_template, render_event
from notifications.templates.digest import DigestTemplate
from notifications.templates.system import GenericTemplate


def _render(**data):
    data.setdefault("recipient_ids", ["u-1"])
    return render_event(RaisedEvent.model_validate(data))


class TestEventTemplates:
    def test_new_letter_uses_letter_number(self):
        rendered = _render(
            type="NEW_LETTER",
            title="Request for documents",
            payload={"letter_number": "IN-2026-17", "organization": "Tax Office"},
        )
        assert rendered["subject"] == "New letter #IN-2026-17"
        assert "From: Tax Office" in rendered["body"]

    def test_comment_excerpt_is_truncated(self):
        rendered = _render(type="COMMENT", title="New comment", payload={"excerpt": "x" * 500})
        assert "x" * 200 + "..." in rendered["body"]
        assert "x" * 201 not in rendered["body"]

    def test_comment_falls_back_to_body(self):
        rendered = _render(type="COMMENT", title="New comment", body="Please review")
        assert "Please review" in rendered["body"]

    def test_status_change_line(self):
        rendered = _render(
            type="STATUS",
            title="Letter IN-1 updated",
            payload={"previous_status": "Draft", "new_status": "Sent"},
        )
        assert "Status changed from Draft to Sent." in rendered["body"]

    def test_assignment_subject(self):
        rendered = _render(type="ASSIGNMENT", title="Letter IN-7")
        assert rendered["subject"] == "Assigned to you: Letter IN-7"

    def test_deadline_urgent_days_left(self):
        rendered = _render(
            type="DEADLINE_URGENT",
            title="Reply to IN-3",
            payload={"days_left": 2, "deadline": "2026-10-21T00:00:00Z"},
        )
        assert rendered["subject"] == "Deadline approaching: Reply to IN-3"
        assert "2 day(s) left" in rendered["body"]
        assert "Deadline: 2026-10-21" in rendered["body"]

    def test_deadline_overdue_subject(self):
        rendered = _render(type="DEADLINE_OVERDUE", title="Reply to IN-3", payload={"days_left": -3})
        assert rendered["subject"] == "OVERDUE: Reply to IN-3"
        assert "Overdue by 3 day(s)." in rendered["body"]

    def test_system_category_prefix(self):
        rendered = _render(type="SYSTEM", title="Maintenance tonight", payload={"category": "ops"})
        assert rendered["subject"] == "[ops] Maintenance tonight"

    def test_unknown_type_uses_generic_template(self):
        assert get_template("LETTER_ARCHIVED") is GenericTemplate
        rendered = _render(type="LETTER_ARCHIVED", title="Archived", payload={"box": 4})
        assert rendered == {"subject": "Archived", "body": "Archived"}


class TestDigestTemplate:
    def _item(self, title, resource_id=None, body=None, event_type="COMMENT"):
        return DigestItem(
            notification_id=f"n-{title}",
            user_id="u-1",
            event_type=event_type,
            title=title,
            body=body,
            priority="Low",
            channels=("Email",),
            resource_id=resource_id,
            created_at=datetime(2026, 10, 19, tzinfo=UTC),
        )

    def test_groups_by_resource(self):
        rendered = DigestTemplate.render(
            [
                self._item("First", "letter-1"),
                self._item("Second", None, event_type="SYSTEM"),
                self._item("Third", "letter-1", event_type="STATUS"),
            ],
            "Daily",
        )
        body = rendered["body"]
        assert rendered["subject"] == "Notification digest: 3 new"
        assert body.startswith("You have 3 new notifications today.")
        assert body.index("== letter-1 ==") < body.index("- [Status] Third")
        assert "== General ==" in body
        assert body.count("== letter-1 ==") == 1

    def test_previews_are_truncated(self):
        rendered = DigestTemplate.render([self._item("Long", body="y" * 400)], "Weekly")
        assert "y" * 150 + "..." in rendered["body"]
        assert "this week" in rendered["body"]
        assert "1 new notification " in rendered["body"]
