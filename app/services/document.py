from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.errors import authorization_error, not_found, validation_error
from app.models.docman import (
    Category,
    Document,
    DocumentFile,
    DocumentVersionHistory,
    ExternalContact,
    ExternalContactType,
    NotificationType,
    ReviewAssignment,
    ReviewInterval,
    ReviewStatus,
)
from app.models.user import User
from app.schemas.docman import DocumentContactInput, DocumentCreate, DocumentUpdate
from app.services import analytics
from app.services.access import (
    DocumentRelations,
    can_delete_document,
    can_read_document,
    document_visibility_clause,
)
from app.services.common import get_or_404, page_window, pagination_meta
from app.services.document_query import (
    build_document_filter,
    build_document_query,
    build_document_sort,
)
from app.services.event import EventType, publish_event
from app.services.notification import Notifications
from app.services.storage import UploadedFile, storage
from app.services.validation import are_all_object_fields_empty, validate_document_title

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
RELATION_FIELDS = ("stakeholders", "owners", "external_contacts")

REVIEW_INTERVAL_DAYS = {
    ReviewInterval.monthly: 30,
    ReviewInterval.quarterly: 91,
    ReviewInterval.semiannually: 182,
    ReviewInterval.annually: 365,
}

_DOCUMENT_LOADERS = (
    selectinload(Document.author),
    selectinload(Document.category),
    selectinload(Document.stakeholders),
    selectinload(Document.owners),
    selectinload(Document.review_completed_by),
    selectinload(Document.external_contacts).selectinload(ExternalContact.contact_type),
)


def next_review_due(document: Document, reviewed_at: datetime) -> datetime | None:
    if document.review_interval is None:
        return None
    if document.review_interval == ReviewInterval.custom:
        days = document.review_interval_days
    else:
        days = REVIEW_INTERVAL_DAYS[document.review_interval]
    if not days:
        return None
    return reviewed_at + timedelta(days=days)


def _load_users(db: Session, user_ids, field_name: str) -> list[User]:
    ids = list(dict.fromkeys(uuid.UUID(str(uid)) for uid in user_ids))
    if not ids:
        return []
    users = db.scalars(select(User).where(User.id.in_(ids))).all()
    if len(users) != len(ids):
        raise validation_error(f"Unknown user in {field_name}")
    by_id = {u.id: u for u in users}
    return [by_id[uid] for uid in ids]


def _build_contacts(
    db: Session, contacts: list[DocumentContactInput]
) -> list[ExternalContact]:
    built = []
    for contact in contacts:
        if contact.type_id is not None and not db.get(ExternalContactType, contact.type_id):
            raise not_found("External contact type")
        built.append(
            ExternalContact(
                name=contact.name.strip(),
                email=contact.email,
                phone_number=contact.phone_number,
                type_id=contact.type_id,
            )
        )
    return built


def _check_category(db: Session, category_id) -> None:
    if category_id is not None and not db.get(Category, category_id):
        raise not_found("Category")


class Documents:
    @staticmethod
    def get(db: Session, document_id: str, user: User) -> Document:
        document = get_or_404(db, Document, document_id, "Document")
        if not can_read_document(user, DocumentRelations.of(document)):
            raise authorization_error("Access denied")
        return document

    @staticmethod
    def list(
        db: Session,
        params: Mapping[str, Any],
        user: User,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict:
        page, limit, offset = page_window(page, limit, MAX_PAGE_SIZE)
        query = build_document_query(params)
        conditions = [
            clause
            for clause in (build_document_filter(query), document_visibility_clause(user))
            if clause is not None
        ]

        count_stmt = select(func.count(Document.id))
        stmt = select(Document).options(*_DOCUMENT_LOADERS)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            stmt = stmt.where(*conditions)
        total = db.scalar(count_stmt) or 0

        stmt = stmt.order_by(
            build_document_sort(params.get("sort_by"), params.get("sort_order")),
            Document.id,
        )
        items = db.scalars(stmt.limit(limit).offset(offset)).all()
        return {"items": items, "pagination": pagination_meta(total, page, limit)}

    @staticmethod
    def create(
        db: Session,
        payload: DocumentCreate,
        upload: UploadedFile | None,
        user: User,
    ) -> Document:
        title = validate_document_title(payload.title)
        if not title.is_valid:
            raise validation_error(title.error or "Invalid title")
        _check_category(db, payload.category_id)

        document = Document(
            title=title.sanitized,
            description=payload.description,
            author_id=user.id,
            category_id=payload.category_id,
            review_date=payload.review_date,
            opens_for_review=payload.opens_for_review,
            review_interval=payload.review_interval,
            review_interval_days=payload.review_interval_days,
            review_period=payload.review_period,
            last_updated_by_id=user.id,
        )
        document.stakeholders = _load_users(db, payload.stakeholders, "stakeholders")
        document.owners = _load_users(db, payload.owners, "owners")
        document.external_contacts = _build_contacts(db, payload.external_contacts)
        db.add(document)
        db.flush()

        if upload is not None:
            Documents._attach_file(
                db, document, upload, payload.change_log or "Initial version", user
            )

        db.commit()
        db.refresh(document)
        analytics.invalidate_document_caches()
        logger.info("Created document %s", document.id)
        publish_event(
            EventType.document_created,
            entity_type="document",
            entity_id=document.id,
            actor_id=user.id,
            document_id=document.id,
        )
        return document

    @staticmethod
    def update(
        db: Session,
        document_id: str,
        payload: DocumentUpdate,
        upload: UploadedFile | None,
        user: User,
    ) -> Document:
        document = Documents.get(db, document_id, user)
        data = payload.model_dump(exclude_unset=True)
        # A list field that was sent is a change even when it is empty.
        relation_sent = any(key in data for key in RELATION_FIELDS)
        if upload is None and not relation_sent and are_all_object_fields_empty(data):
            raise validation_error("No fields were changed")

        change_log = data.pop("change_log", None)
        if "title" in data:
            title = validate_document_title(data["title"])
            if not title.is_valid:
                raise validation_error(title.error or "Invalid title")
            data["title"] = title.sanitized
        if "category_id" in data:
            _check_category(db, data["category_id"])
        if "stakeholders" in data:
            document.stakeholders = _load_users(
                db, data.pop("stakeholders") or [], "stakeholders"
            )
        if "owners" in data:
            document.owners = _load_users(db, data.pop("owners") or [], "owners")
        if "external_contacts" in data:
            data.pop("external_contacts")
            document.external_contacts = _build_contacts(
                db, payload.external_contacts or []
            )

        for key, value in data.items():
            setattr(document, key, value)
        document.last_updated_by_id = user.id

        if upload is not None:
            Documents._attach_file(db, document, upload, change_log, user)

        recipients = Documents._update_recipients(db, document, user)
        Notifications.document_updated(db, recipients, document, user)
        db.commit()
        db.refresh(document)
        analytics.invalidate_document_caches()
        logger.info("Updated document %s", document.id)
        publish_event(
            EventType.document_updated,
            entity_type="document",
            entity_id=document.id,
            actor_id=user.id,
            document_id=document.id,
            payload={
                "changed_fields": sorted(data.keys()) + (["file"] if upload else []),
                "recipients": [str(r) for r in recipients],
                "title": f"Document updated: {document.title}",
            },
        )
        return document

    @staticmethod
    def delete(db: Session, document_id: str, user: User) -> None:
        document = Documents.get(db, document_id, user)
        if not can_delete_document(user, DocumentRelations.of(document)):
            raise authorization_error("Insufficient permissions to delete document")
        storage_keys = [f.storage_key for f in document.files]
        db.delete(document)
        db.commit()
        for key in storage_keys:
            try:
                storage.delete(key)
            except Exception as e:
                logger.warning("Failed to delete stored file %s: %s", key, e)
        analytics.invalidate_document_caches()
        logger.info("Deleted document %s", document_id)
        publish_event(
            EventType.document_deleted,
            entity_type="document",
            entity_id=document_id,
            actor_id=user.id,
        )

    # ------------------------------------------------------------------
    # Files and versions
    # ------------------------------------------------------------------

    @staticmethod
    def upload_file_version(
        db: Session,
        document_id: str,
        upload: UploadedFile,
        change_log: str | None,
        user: User,
    ) -> DocumentFile:
        document = Documents.get(db, document_id, user)
        file = Documents._attach_file(db, document, upload, change_log, user)
        document.last_updated_by_id = user.id
        db.commit()
        db.refresh(file)
        analytics.invalidate_document_caches()
        logger.info(
            "Uploaded version %d of document %s", file.version_number, document.id
        )
        publish_event(
            EventType.document_file_uploaded,
            entity_type="document_file",
            entity_id=file.id,
            actor_id=user.id,
            document_id=document.id,
            payload={"version_number": file.version_number},
        )
        return file

    @staticmethod
    def list_files(db: Session, document_id: str, user: User) -> list[DocumentFile]:
        document = Documents.get(db, document_id, user)
        return list(document.files)

    @staticmethod
    def download_url(
        db: Session, document_id: str, user: User, version: int | None = None
    ) -> dict:
        document = Documents.get(db, document_id, user)
        files = document.files
        if version is not None:
            files = [f for f in files if f.version_number == version]
        if not files:
            raise not_found("File")
        file = files[-1]
        return {
            "download_url": storage.generate_download_url(file.storage_key),
            "file_name": file.original_name,
            "version_number": file.version_number,
        }

    @staticmethod
    def _attach_file(
        db: Session,
        document: Document,
        upload: UploadedFile,
        change_log: str | None,
        user: User,
    ) -> DocumentFile:
        key = storage.save(document.id, upload)
        file = DocumentFile(
            document_id=document.id,
            file_name=key.rsplit("/", 1)[-1],
            original_name=upload.filename,
            storage_key=key,
            mime_type=upload.content_type or "application/octet-stream",
            size=upload.size,
            change_log=change_log,
            uploaded_by_id=user.id,
        )
        db.add(file)
        db.flush()
        db.add(
            DocumentVersionHistory(
                document_id=document.id,
                file_id=file.id,
                version_number=file.version_number,
                file_name=upload.filename,
                change_log=change_log,
                changed_by_id=user.id,
            )
        )
        document.file_name = upload.filename
        document.file_size = upload.size
        document.mime_type = file.mime_type
        document.storage_key = key
        db.flush()
        db.refresh(document)
        return file

    # ------------------------------------------------------------------
    # Review sign-off
    # ------------------------------------------------------------------

    @staticmethod
    def set_review_completed(
        db: Session,
        document_id: str,
        completed: bool,
        notes: str | None,
        user: User,
    ) -> Document:
        document = Documents.get(db, document_id, user)
        now = datetime.now(timezone.utc)
        if completed:
            document.review_completed = True
            document.review_completed_by_id = user.id
            document.review_completed_at = now
            document.last_reviewed_on = now
            document.next_review_due_on = next_review_due(document, now)
            if notes is not None:
                document.review_notes = notes
            if document.author_id != user.id:
                Notifications.notify(
                    db,
                    document.author_id,
                    NotificationType.document_review_completed,
                    title=f"Review completed: {document.title}",
                    message=f"{user.full_name} completed the review of '{document.title}'.",
                    sender_id=user.id,
                    document_id=document.id,
                )
        else:
            document.review_completed = False
        document.last_updated_by_id = user.id
        db.commit()
        db.refresh(document)
        analytics.invalidate_document_caches()
        logger.info(
            "Set review_completed=%s on document %s", completed, document.id
        )
        if completed:
            publish_event(
                EventType.document_review_completed,
                entity_type="document",
                entity_id=document.id,
                actor_id=user.id,
                document_id=document.id,
            )
        return document

    @staticmethod
    def _update_recipients(
        db: Session, document: Document, actor: User
    ) -> list[uuid.UUID]:
        recipients: dict[uuid.UUID, None] = {}
        for person in list(document.stakeholders) + list(document.owners):
            recipients[person.id] = None
        assignee_ids = db.scalars(
            select(ReviewAssignment.assignee_id).where(
                ReviewAssignment.document_id == document.id,
                ReviewAssignment.status.in_(
                    [ReviewStatus.pending, ReviewStatus.in_progress]
                ),
            )
        ).all()
        for assignee_id in assignee_ids:
            recipients[assignee_id] = None
        recipients.pop(actor.id, None)
        return list(recipients)


documents = Documents()
