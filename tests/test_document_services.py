import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi import HTTPException

from app.config import settings
from app.models.docman import (
    Document,
    Notification,
    NotificationType,
    ReviewAssignment,
    ReviewInterval,
    ReviewStatus,
)
from app.models.user import UserRole
from app.schemas.docman import DocumentContactInput, DocumentCreate, DocumentUpdate
from app.services.document import documents, next_review_due
from app.services.storage import UploadedFile


def _upload(name: str = "policy.pdf", content: bytes = b"%PDF-1.4 body") -> UploadedFile:
    return UploadedFile(filename=name, content_type="application/pdf", content=content)


class TestCreateDocument:
    def test_create_with_relations(self, db_session, editor, viewer, admin, category):
        document = documents.create(
            db_session,
            DocumentCreate(
                title="  Incident Response ",
                description="Who to call",
                category_id=category.id,
                stakeholders=[viewer.id, viewer.id],
                owners=[admin.id],
                external_contacts=[DocumentContactInput(name="Acme", email="a@acme.test")],
            ),
            None,
            editor,
        )
        assert document.title == "Incident Response"
        assert document.author_id == editor.id
        assert [u.id for u in document.stakeholders] == [viewer.id]
        assert [u.id for u in document.owners] == [admin.id]
        assert document.external_contacts[0].name == "Acme"
        assert document.files == []

    def test_create_with_file(self, db_session, editor):
        document = documents.create(
            db_session, DocumentCreate(title="Runbook"), _upload(), editor
        )
        assert document.file_name == "policy.pdf"
        assert document.file_size == len(b"%PDF-1.4 body")
        assert [f.version_number for f in document.files] == [1]
        assert document.version_history[0].change_log == "Initial version"

    def test_create_publishes_event(self, db_session, editor, published_events):
        document = documents.create(db_session, DocumentCreate(title="Runbook"), None, editor)
        kwargs = published_events.call_args.kwargs
        assert kwargs["event_type"] == "document.created"
        assert kwargs["document_id"] == str(document.id)

    def test_create_short_title(self, db_session, editor):
        with pytest.raises(HTTPException) as exc:
            documents.create(db_session, DocumentCreate(title="ab"), None, editor)
        assert exc.value.status_code == 400
        assert exc.value.detail == "Document title must be at least 3 characters long"

    def test_create_unknown_category(self, db_session, editor):
        with pytest.raises(HTTPException) as exc:
            documents.create(
                db_session,
                DocumentCreate(title="Runbook", category_id=uuid.uuid4()),
                None,
                editor,
            )
        assert exc.value.status_code == 404
        assert exc.value.detail == "Category not found"

    def test_create_unknown_stakeholder(self, db_session, editor):
        with pytest.raises(HTTPException) as exc:
            documents.create(
                db_session,
                DocumentCreate(title="Runbook", stakeholders=[uuid.uuid4()]),
                None,
                editor,
            )
        assert exc.value.detail == "Unknown user in stakeholders"

    def test_create_empty_file(self, db_session, editor):
        with pytest.raises(HTTPException) as exc:
            documents.create(
                db_session, DocumentCreate(title="Runbook"), _upload(content=b""), editor
            )
        assert exc.value.detail == "Uploaded file is empty"


class TestGetAndList:
    def test_author_can_read(self, db_session, document, editor):
        assert documents.get(db_session, str(document.id), editor).id == document.id

    def test_stranger_is_denied(self, db_session, document, viewer):
        with pytest.raises(HTTPException) as exc:
            documents.get(db_session, str(document.id), viewer)
        assert exc.value.status_code == 403
        assert exc.value.detail == "Access denied"

    def test_admin_reads_everything(self, db_session, document, admin):
        assert documents.get(db_session, str(document.id), admin).id == document.id

    def test_missing_document(self, db_session, editor):
        with pytest.raises(HTTPException) as exc:
            documents.get(db_session, "nope", editor)
        assert exc.value.status_code == 404

    def test_list_respects_visibility(self, db_session, document, viewer, make_user):
        other = make_user(UserRole.editor)
        db_session.add(Document(title="Shared with viewer", author_id=other.id, stakeholders=[viewer]))
        db_session.add(Document(title="Private", author_id=other.id))
        db_session.commit()

        result = documents.list(db_session, {}, viewer)
        assert [d.title for d in result["items"]] == ["Shared with viewer"]
        assert result["pagination"] == {"total": 1, "page": 1, "limit": 50, "pages": 1}

    def test_list_pagination_and_sort(self, db_session, editor):
        for title in ["Charlie", "Alpha", "Bravo"]:
            db_session.add(Document(title=title, author_id=editor.id))
        db_session.commit()

        result = documents.list(
            db_session, {"sort_by": "title", "sort_order": "asc"}, editor, page=2, limit=2
        )
        assert [d.title for d in result["items"]] == ["Charlie"]
        assert result["pagination"]["pages"] == 2

    def test_list_search(self, db_session, document, editor):
        result = documents.list(db_session, {"search": "secrets"}, editor)
        assert [d.id for d in result["items"]] == [document.id]


class TestUpdateDocument:
    def test_update_fields(self, db_session, document, editor):
        updated = documents.update(
            db_session,
            str(document.id),
            DocumentUpdate(title="Security Policy v2", review_interval=ReviewInterval.annually),
            None,
            editor,
        )
        assert updated.title == "Security Policy v2"
        assert updated.review_interval == ReviewInterval.annually
        assert updated.last_updated_by_id == editor.id

    def test_clearing_stakeholders_is_a_change(
        self, db_session, document, editor, viewer
    ):
        document.stakeholders = [viewer]
        db_session.commit()
        updated = documents.update(
            db_session, str(document.id), DocumentUpdate(stakeholders=[]), None, editor
        )
        assert updated.stakeholders == []

    def test_no_changes(self, db_session, document, editor):
        with pytest.raises(HTTPException) as exc:
            documents.update(
                db_session, str(document.id), DocumentUpdate(description="  "), None, editor
            )
        assert exc.value.detail == "No fields were changed"

    def test_update_notifies_everyone_but_actor(
        self, db_session, document, editor, viewer, admin, make_user
    ):
        assignee = make_user(UserRole.viewer)
        finished = make_user(UserRole.viewer)
        document.stakeholders = [viewer, editor]
        document.owners = [admin]
        now = datetime.now(timezone.utc)
        db_session.add_all(
            [
                ReviewAssignment(
                    document_id=document.id,
                    assignee_id=assignee.id,
                    assigned_by_id=admin.id,
                    due_date=now + timedelta(days=3),
                ),
                ReviewAssignment(
                    document_id=document.id,
                    assignee_id=finished.id,
                    assigned_by_id=admin.id,
                    due_date=now,
                    status=ReviewStatus.completed,
                ),
            ]
        )
        db_session.commit()

        documents.update(
            db_session, str(document.id), DocumentUpdate(description="New"), None, editor
        )
        recipients = {
            n.recipient_id
            for n in db_session.query(Notification).filter(
                Notification.type == NotificationType.document_updated
            )
        }
        assert recipients == {viewer.id, admin.id, assignee.id}

    def test_update_with_file_adds_version(self, db_session, document, editor):
        documents.update(
            db_session,
            str(document.id),
            DocumentUpdate(change_log="First upload"),
            _upload("v1.pdf"),
            editor,
        )
        updated = documents.update(
            db_session,
            str(document.id),
            DocumentUpdate(change_log="Second upload"),
            _upload("v2.pdf"),
            editor,
        )
        assert [f.version_number for f in updated.files] == [1, 2]
        assert updated.file_name == "v2.pdf"
        assert [h.change_log for h in updated.version_history] == [
            "First upload",
            "Second upload",
        ]

    def test_replace_stakeholders(self, db_session, document, editor, viewer):
        updated = documents.update(
            db_session,
            str(document.id),
            DocumentUpdate(stakeholders=[viewer.id]),
            None,
            editor,
        )
        assert [u.id for u in updated.stakeholders] == [viewer.id]


class TestDeleteDocument:
    def test_author_deletes(self, db_session, document, editor):
        documents.delete(db_session, str(document.id), editor)
        assert db_session.get(Document, document.id) is None

    def test_owner_cannot_delete(self, db_session, document, viewer):
        document.owners = [viewer]
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            documents.delete(db_session, str(document.id), viewer)
        assert exc.value.status_code == 403
        assert exc.value.detail == "Insufficient permissions to delete document"

    def test_delete_removes_stored_files(self, db_session, document, editor):
        file = documents.upload_file_version(
            db_session, str(document.id), _upload(), None, editor
        )
        path = Path(settings.upload_dir) / file.storage_key
        assert path.exists()
        documents.delete(db_session, str(document.id), editor)
        assert not path.exists()


class TestFiles:
    def test_upload_versions_and_download(self, db_session, document, editor):
        first = documents.upload_file_version(
            db_session, str(document.id), _upload("a.pdf"), "first", editor
        )
        second = documents.upload_file_version(
            db_session, str(document.id), _upload("b.pdf"), "second", editor
        )
        assert (first.version_number, second.version_number) == (1, 2)
        assert len(documents.list_files(db_session, str(document.id), editor)) == 2

        latest = documents.download_url(db_session, str(document.id), editor)
        assert latest["file_name"] == "b.pdf"
        assert latest["download_url"].startswith("/uploads/documents/")
        pinned = documents.download_url(db_session, str(document.id), editor, version=1)
        assert pinned["file_name"] == "a.pdf"

    def test_download_without_files(self, db_session, document, editor):
        with pytest.raises(HTTPException) as exc:
            documents.download_url(db_session, str(document.id), editor)
        assert exc.value.status_code == 404
        assert exc.value.detail == "File not found"


class TestReviewCompletion:
    def test_next_review_due(self, document):
        reviewed = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert next_review_due(document, reviewed) is None
        document.review_interval = ReviewInterval.quarterly
        assert next_review_due(document, reviewed) == reviewed + timedelta(days=91)
        document.review_interval = ReviewInterval.custom
        document.review_interval_days = 10
        assert next_review_due(document, reviewed) == reviewed + timedelta(days=10)

    def test_complete_review_by_admin(self, db_session, document, admin):
        document.review_interval = ReviewInterval.monthly
        db_session.commit()
        result = documents.set_review_completed(
            db_session, str(document.id), True, "Looks good", admin
        )
        assert result.review_completed is True
        assert result.review_completed_by_id == admin.id
        assert result.review_notes == "Looks good"
        assert (result.next_review_due_on - result.last_reviewed_on).days == 30

        notification = db_session.query(Notification).one()
        assert notification.recipient_id == document.author_id
        assert notification.type == NotificationType.document_review_completed

    def test_author_completing_does_not_notify(self, db_session, document, editor):
        documents.set_review_completed(db_session, str(document.id), True, None, editor)
        assert db_session.query(Notification).count() == 0

    def test_reopen_review(self, db_session, document, editor):
        documents.set_review_completed(db_session, str(document.id), True, None, editor)
        result = documents.set_review_completed(
            db_session, str(document.id), False, None, editor
        )
        assert result.review_completed is False
        assert result.review_completed_by_id is None
        assert result.last_reviewed_on is not None

    def test_clearing_flag_drops_completion_details(self, document, editor):
        document.review_completed = True
        document.review_completed_by_id = editor.id
        document.review_completed_at = datetime.now(timezone.utc)

        document.review_completed = False
        assert document.review_completed_by_id is None
        assert document.review_completed_at is None
