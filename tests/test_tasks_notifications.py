import logging
import smtplib
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from app.models.user import UserRole
from app.tasks import notifications as tasks
from app.tasks.notifications import (
    EMAIL_TEMPLATES,
    _dispatch,
    _recipient_emails,
    dispatch_notifications,
)


@pytest.fixture()
def queued_emails():
    with patch("app.tasks.notifications.send_notification_email.delay") as delay:
        yield delay


class TestEmailTemplates:
    def test_review_assigned(self):
        subject, body = EMAIL_TEMPLATES["review.assigned"](
            {
                "document_title": "Policy",
                "assigned_by": "Eddie Editor",
                "due_date": "2026-11-01",
                "notes": "Legal pass",
            }
        )
        assert subject == "Review assigned: Policy"
        assert "Eddie Editor assigned you" in body
        assert body.endswith("Notes: Legal pass")

    def test_document_updated_lists_fields(self):
        subject, body = EMAIL_TEMPLATES["document.updated"](
            {"title": "Policy updated", "changed_fields": ["title", "owners"]}
        )
        assert subject == "Policy updated"
        assert body == "The following were changed: title, owners."

    def test_invitation_contains_link(self):
        _, body = EMAIL_TEMPLATES["team.invitation_sent"](
            {"team_name": "Platform", "accept_url": "http://app/teams/accept/tok"}
        )
        assert "http://app/teams/accept/tok" in body


class TestRecipientEmails:
    def test_resolves_ids_and_skips_actor(self, db_session, viewer, editor, make_user):
        inactive = make_user(UserRole.viewer, is_active=False)
        emails = _recipient_emails(
            db_session,
            {"recipients": [str(viewer.id), str(editor.id), str(inactive.id)]},
            str(editor.id),
        )
        assert emails == [viewer.email]

    def test_literal_address_deduplicated(self, db_session, viewer):
        emails = _recipient_emails(
            db_session, {"recipients": [str(viewer.id)], "email": viewer.email}, None
        )
        assert emails == [viewer.email]


class TestDispatch:
    def test_queues_one_email_per_recipient(
        self, db_session, viewer, admin, queued_emails
    ):
        count = _dispatch(
            db_session,
            "review.due",
            None,
            {
                "recipients": [str(viewer.id), str(admin.id)],
                "document_title": "Policy",
                "due_date": "2026-11-01",
            },
        )
        assert count == 2
        sent_to = {c.kwargs["email"] for c in queued_emails.call_args_list}
        assert sent_to == {viewer.email, admin.email}
        assert queued_emails.call_args.kwargs["subject"] == "Review due: Policy"

    def test_password_reset_uses_literal_email(self, db_session, queued_emails):
        _dispatch(
            db_session,
            "user.password_reset_requested",
            None,
            {"email": "someone@example.com", "reset_url": "http://app/reset/abc"},
        )
        queued_emails.assert_called_once()
        assert queued_emails.call_args.kwargs["email"] == "someone@example.com"
        assert "http://app/reset/abc" in queued_emails.call_args.kwargs["body"]

    def test_unmapped_event_sends_nothing(self, queued_emails):
        with patch("app.db.SessionLocal") as session_local:
            dispatch_notifications(
                event_type="document.deleted", entity_type="document", entity_id="1"
            )
        session_local.assert_not_called()
        queued_emails.assert_not_called()


class TestSendNotificationEmail:
    def test_logs_without_smtp(self, monkeypatch, caplog):
        monkeypatch.setattr(tasks, "settings", replace(tasks.settings, smtp_host=""))
        with caplog.at_level(logging.INFO, logger="app.tasks.notifications"):
            tasks.send_notification_email("a@example.com", "Hello", "Body")
        assert "SMTP not configured" in caplog.text

    def test_sends_via_smtp(self, monkeypatch):
        monkeypatch.setattr(
            tasks,
            "settings",
            replace(
                tasks.settings,
                smtp_host="mail.example.com",
                smtp_port=2525,
                smtp_use_tls=True,
                smtp_username="mailer",
                smtp_password="pw",
            ),
        )
        smtp = MagicMock()
        with patch("app.tasks.notifications.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.__enter__.return_value = smtp
            tasks.send_notification_email("a@example.com", "Hello", "Body")

        smtp_cls.assert_called_once_with("mail.example.com", 2525, timeout=30)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("mailer", "pw")
        message = smtp.send_message.call_args.args[0]
        assert message["To"] == "a@example.com"
        assert message["Subject"] == "Hello"

    def test_smtp_failure_is_logged(self, monkeypatch, caplog):
        monkeypatch.setattr(
            tasks, "settings", replace(tasks.settings, smtp_host="mail.example.com")
        )
        with patch(
            "app.tasks.notifications.smtplib.SMTP",
            side_effect=smtplib.SMTPConnectError(421, "busy"),
        ):
            tasks.send_notification_email("a@example.com", "Hello", "Body")
        assert "Failed to send email to a@example.com" in caplog.text
