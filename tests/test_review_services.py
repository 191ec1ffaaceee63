import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.models.docman import (
    Notification,
    NotificationType,
    ReviewAssignment,
    ReviewStatus,
)
from app.models.user import UserRole
from app.schemas.review import (
    ReviewAssigneeInput,
    ReviewAssignmentCreate,
    ReviewAssignmentUpdate,
)
from app.services.review import reviews


def _now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture()
def assignment(db_session, document, viewer, editor):
    a = ReviewAssignment(
        document_id=document.id,
        assignee_id=viewer.id,
        assigned_by_id=editor.id,
        due_date=_now() + timedelta(days=5),
    )
    db_session.add(a)
    db_session.commit()
    db_session.refresh(a)
    return a


class TestCreateAssignments:
    def test_creates_and_notifies(
        self, db_session, document, editor, viewer, admin, published_events
    ):
        due = _now() + timedelta(days=10)
        created = reviews.create_assignments(
            db_session,
            ReviewAssignmentCreate(
                document_id=document.id,
                assignments=[
                    ReviewAssigneeInput(assignee_id=viewer.id, due_date=due, notes="Legal"),
                    ReviewAssigneeInput(assignee_id=admin.id, due_date=due),
                ],
            ),
            editor,
        )
        assert {a.assignee_id for a in created} == {viewer.id, admin.id}
        assert all(a.status == ReviewStatus.pending for a in created)

        notifications = db_session.query(Notification).all()
        assert {n.recipient_id for n in notifications} == {viewer.id, admin.id}
        assert all(n.type == NotificationType.document_assigned for n in notifications)

        events = [c.kwargs["event_type"] for c in published_events.call_args_list]
        assert events == ["review.assigned", "review.assigned"]

    def test_unknown_assignee(self, db_session, document, editor):
        with pytest.raises(HTTPException) as exc:
            reviews.create_assignments(
                db_session,
                ReviewAssignmentCreate(
                    document_id=document.id,
                    assignments=[
                        ReviewAssigneeInput(assignee_id=uuid.uuid4(), due_date=_now())
                    ],
                ),
                editor,
            )
        assert exc.value.status_code == 404
        assert exc.value.detail == "Assignee not found"

    def test_requires_document_access(self, db_session, document, make_user, viewer):
        outsider = make_user(UserRole.editor)
        with pytest.raises(HTTPException) as exc:
            reviews.create_assignments(
                db_session,
                ReviewAssignmentCreate(
                    document_id=document.id,
                    assignments=[ReviewAssigneeInput(assignee_id=viewer.id, due_date=_now())],
                ),
                outsider,
            )
        assert exc.value.status_code == 403


class TestListAssignments:
    def test_list_for_document(self, db_session, assignment, document, editor):
        result = reviews.list_for_document(db_session, str(document.id), editor)
        assert [a.id for a in result] == [assignment.id]

    def test_list_for_self(self, db_session, assignment, viewer):
        assert len(reviews.list_for_user(db_session, str(viewer.id), None, viewer)) == 1
        assert reviews.list_for_user(db_session, str(viewer.id), "completed", viewer) == []

    def test_list_for_other_user_denied(self, db_session, assignment, viewer, editor):
        with pytest.raises(HTTPException) as exc:
            reviews.list_for_user(db_session, str(viewer.id), None, editor)
        assert exc.value.status_code == 403

    def test_admin_lists_other_user(self, db_session, assignment, viewer, admin):
        assert len(reviews.list_for_user(db_session, str(viewer.id), "pending", admin)) == 1

    def test_invalid_status(self, db_session, viewer):
        with pytest.raises(HTTPException) as exc:
            reviews.list_for_user(db_session, str(viewer.id), "stalled", viewer)
        assert exc.value.detail == "Invalid status: stalled"

    def test_list_overdue(self, db_session, assignment, document, viewer, editor):
        late = ReviewAssignment(
            document_id=document.id,
            assignee_id=viewer.id,
            assigned_by_id=editor.id,
            due_date=_now() - timedelta(days=1),
        )
        done = ReviewAssignment(
            document_id=document.id,
            assignee_id=viewer.id,
            assigned_by_id=editor.id,
            due_date=_now() - timedelta(days=1),
            status=ReviewStatus.completed,
        )
        db_session.add_all([late, done])
        db_session.commit()
        assert [a.id for a in reviews.list_overdue(db_session)] == [late.id]


class TestUpdateAssignment:
    def test_assignee_completes(self, db_session, assignment, viewer, published_events):
        result = reviews.update(
            db_session,
            str(assignment.id),
            ReviewAssignmentUpdate(status=ReviewStatus.completed, notes="Approved"),
            viewer,
        )
        assert result.status == ReviewStatus.completed
        assert result.completed_date is not None
        assert result.notes == "Approved"
        assert published_events.call_args.kwargs["payload"] == {"status": "completed"}

    def test_unrelated_user_denied(self, db_session, assignment, make_user):
        other = make_user(UserRole.editor)
        with pytest.raises(HTTPException) as exc:
            reviews.update(
                db_session,
                str(assignment.id),
                ReviewAssignmentUpdate(status=ReviewStatus.in_progress),
                other,
            )
        assert exc.value.status_code == 403

    def test_requires_updates_creates_follow_up(
        self, db_session, assignment, document, viewer, editor
    ):
        reviews.update(
            db_session,
            str(assignment.id),
            ReviewAssignmentUpdate(
                status=ReviewStatus.completed,
                requires_updates=True,
                update_notes="Fix section 2",
            ),
            viewer,
        )
        follow_up = (
            db_session.query(ReviewAssignment)
            .filter(ReviewAssignment.update_assignment_id == assignment.id)
            .one()
        )
        assert follow_up.assignee_id == document.author_id == editor.id
        assert follow_up.assigned_by_id == viewer.id
        assert follow_up.status == ReviewStatus.pending
        assert "Fix section 2" in follow_up.notes
        days = (follow_up.due_date - follow_up.created_at).days
        assert days in (6, 7)

        notified = db_session.query(Notification).filter(
            Notification.recipient_id == editor.id
        )
        assert notified.count() == 1

    def test_not_found(self, db_session, viewer):
        with pytest.raises(HTTPException) as exc:
            reviews.update(db_session, str(uuid.uuid4()), ReviewAssignmentUpdate(), viewer)
        assert exc.value.detail == "Review assignment not found"


class TestMarkOverdue:
    def test_marks_only_past_due_active(self, db_session, assignment):
        assert reviews.mark_overdue(db_session) == 0
        later = _now() + timedelta(days=6)
        assert reviews.mark_overdue(db_session, now=later) == 1
        db_session.refresh(assignment)
        assert assignment.status == ReviewStatus.overdue
        assert reviews.mark_overdue(db_session, now=later) == 0
