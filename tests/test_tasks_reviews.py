from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from app.models.docman import (
    Document,
    Notification,
    NotificationType,
    ReviewAssignment,
    ReviewStatus,
)
from app.tasks.reviews import _send_reminders, mark_overdue_assignments

NOW = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)


class TestSendReminders:
    def test_notifies_stakeholders_and_owners(
        self, db_session, document, viewer, admin, published_events
    ):
        document.opens_for_review = NOW + timedelta(hours=6)
        document.stakeholders = [viewer]
        document.owners = [admin, viewer]
        db_session.commit()

        assert _send_reminders(db_session, NOW) == 1
        notifications = db_session.query(Notification).all()
        assert {n.recipient_id for n in notifications} == {viewer.id, admin.id}
        assert all(n.type == NotificationType.document_review_due for n in notifications)

        kwargs = published_events.call_args.kwargs
        assert kwargs["event_type"] == "review.due"
        assert set(kwargs["payload"]["recipients"]) == {str(viewer.id), str(admin.id)}
        assert kwargs["payload"]["due_date"] == "2026-10-18"

    def test_ignores_documents_outside_window(
        self, db_session, document, viewer, editor, published_events
    ):
        document.opens_for_review = NOW + timedelta(days=3)
        document.stakeholders = [viewer]
        past = Document(
            title="Past", author_id=editor.id, opens_for_review=NOW - timedelta(hours=1)
        )
        past.stakeholders = [viewer]
        db_session.add(past)
        db_session.commit()

        assert _send_reminders(db_session, NOW) == 0
        assert db_session.query(Notification).count() == 0
        published_events.assert_not_called()

    def test_document_without_audience(self, db_session, document, published_events):
        document.opens_for_review = NOW + timedelta(hours=1)
        db_session.commit()
        assert _send_reminders(db_session, NOW) == 0
        published_events.assert_not_called()


class TestMarkOverdueTask:
    def test_uses_fresh_session(self, db_session, document, viewer, editor):
        assignment = ReviewAssignment(
            document_id=document.id,
            assignee_id=viewer.id,
            assigned_by_id=editor.id,
            due_date=datetime.now(timezone.utc) - timedelta(hours=2),
        )
        db_session.add(assignment)
        db_session.commit()

        with patch("app.db.SessionLocal", return_value=db_session), patch.object(
            db_session, "close"
        ):
            mark_overdue_assignments()

        db_session.refresh(assignment)
        assert assignment.status == ReviewStatus.overdue
