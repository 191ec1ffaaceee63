from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.errors import authorization_error, not_found, validation_error
from app.models.docman import Document, ReviewAssignment, ReviewStatus
from app.models.user import User
from app.schemas.review import ReviewAssignmentCreate, ReviewAssignmentUpdate
from app.services.access import is_admin
from app.services.common import get_or_404
from app.services.document import Documents
from app.services.event import EventType, publish_event
from app.services.notification import Notifications

logger = logging.getLogger(__name__)

FOLLOW_UP_DAYS = 7
ACTIVE_STATUSES = (ReviewStatus.pending, ReviewStatus.in_progress)

_ASSIGNMENT_LOADERS = (
    selectinload(ReviewAssignment.document),
    selectinload(ReviewAssignment.assignee),
    selectinload(ReviewAssignment.assigned_by),
)


def _assignment_event(
    event_type: EventType, assignment: ReviewAssignment, document: Document, actor: User
) -> None:
    publish_event(
        event_type,
        entity_type="review_assignment",
        entity_id=assignment.id,
        actor_id=actor.id,
        document_id=document.id,
        payload={
            "recipients": [str(assignment.assignee_id)],
            "document_title": document.title,
            "assigned_by": actor.full_name,
            "due_date": assignment.due_date.isoformat(),
            "notes": assignment.notes,
        },
    )


class Reviews:
    @staticmethod
    def create_assignments(
        db: Session, payload: ReviewAssignmentCreate, user: User
    ) -> List[ReviewAssignment]:
        document = Documents.get(db, str(payload.document_id), user)
        created = []
        for item in payload.assignments:
            assignee = db.get(User, item.assignee_id)
            if assignee is None:
                raise not_found("Assignee")
            assignment = ReviewAssignment(
                document_id=document.id,
                assignee_id=assignee.id,
                assigned_by_id=user.id,
                due_date=item.due_date,
                notes=item.notes,
                status=ReviewStatus.pending,
            )
            db.add(assignment)
            Notifications.document_assigned(db, assignee.id, document, user, item.due_date)
            created.append(assignment)
        db.commit()
        for assignment in created:
            db.refresh(assignment)
            _assignment_event(EventType.review_assigned, assignment, document, user)
        logger.info(
            "Created %d review assignments for document %s", len(created), document.id
        )
        return created

    @staticmethod
    def get(db: Session, assignment_id: str) -> ReviewAssignment:
        return get_or_404(db, ReviewAssignment, assignment_id, "Review assignment")

    @staticmethod
    def list_for_document(
        db: Session, document_id: str, user: User
    ) -> List[ReviewAssignment]:
        document = Documents.get(db, document_id, user)
        return db.scalars(
            select(ReviewAssignment)
            .options(*_ASSIGNMENT_LOADERS)
            .where(ReviewAssignment.document_id == document.id)
            .order_by(ReviewAssignment.due_date.asc())
        ).all()

    @staticmethod
    def list_for_user(
        db: Session, user_id: str, status: str | None, requester: User
    ) -> List[ReviewAssignment]:
        if str(requester.id) != str(user_id) and not is_admin(requester):
            raise authorization_error("Access denied")
        assignee = get_or_404(db, User, user_id, "User")
        stmt = (
            select(ReviewAssignment)
            .options(*_ASSIGNMENT_LOADERS)
            .where(ReviewAssignment.assignee_id == assignee.id)
        )
        if status:
            try:
                stmt = stmt.where(ReviewAssignment.status == ReviewStatus(status))
            except ValueError:
                raise validation_error(f"Invalid status: {status}")
        return db.scalars(stmt.order_by(ReviewAssignment.due_date.asc())).all()

    @staticmethod
    def list_overdue(
        db: Session, now: datetime | None = None
    ) -> List[ReviewAssignment]:
        now = now or datetime.now(timezone.utc)
        return db.scalars(
            select(ReviewAssignment)
            .options(*_ASSIGNMENT_LOADERS)
            .where(
                ReviewAssignment.due_date < now,
                ReviewAssignment.status.in_(ACTIVE_STATUSES),
            )
            .order_by(ReviewAssignment.due_date.asc())
        ).all()

    @staticmethod
    def update(
        db: Session, assignment_id: str, payload: ReviewAssignmentUpdate, user: User
    ) -> ReviewAssignment:
        assignment = Reviews.get(db, assignment_id)
        if user.id not in (assignment.assignee_id, assignment.assigned_by_id) and not is_admin(
            user
        ):
            raise authorization_error("Access denied")
        data = payload.model_dump(exclude_unset=True)

        status = data.pop("status", None)
        if status is not None:
            assignment.status = status
            if status == ReviewStatus.completed:
                assignment.completed_date = datetime.now(timezone.utc)
        for key in ("notes", "requires_updates", "update_notes", "due_date"):
            if key in data and data[key] is not None:
                setattr(assignment, key, data[key])

        follow_up = None
        if data.get("requires_updates") is True:
            follow_up = Reviews._create_follow_up(db, assignment)
        db.commit()
        db.refresh(assignment)
        logger.info("Updated review assignment %s", assignment.id)
        publish_event(
            EventType.review_updated,
            entity_type="review_assignment",
            entity_id=assignment.id,
            actor_id=user.id,
            document_id=assignment.document_id,
            payload={"status": assignment.status.value},
        )
        if follow_up is not None:
            db.refresh(follow_up)
            _assignment_event(
                EventType.review_follow_up_created,
                follow_up,
                assignment.document,
                assignment.assignee,
            )
        return assignment

    @staticmethod
    def _create_follow_up(db: Session, review: ReviewAssignment) -> ReviewAssignment:
        """Hand the document back to its author for the requested changes."""
        document = review.document
        due = datetime.now(timezone.utc) + timedelta(days=FOLLOW_UP_DAYS)
        follow_up = ReviewAssignment(
            document_id=document.id,
            assignee_id=document.author_id,
            assigned_by_id=review.assignee_id,
            due_date=due,
            notes=f"Updates required based on review: {review.update_notes or 'See review notes'}",
            status=ReviewStatus.pending,
            update_assignment_id=review.id,
        )
        db.add(follow_up)
        Notifications.document_assigned(
            db, document.author_id, document, review.assignee, due
        )
        db.flush()
        logger.info(
            "Created follow-up assignment %s for review %s", follow_up.id, review.id
        )
        return follow_up

    @staticmethod
    def mark_overdue(db: Session, now: datetime | None = None) -> int:
        overdue = Reviews.list_overdue(db, now)
        for assignment in overdue:
            assignment.status = ReviewStatus.overdue
        db.commit()
        if overdue:
            logger.info("Marked %d review assignments overdue", len(overdue))
        return len(overdue)


reviews = Reviews()
