import logging
from datetime import datetime, timedelta, timezone

from app.celery_app import celery_app

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(days=1)


@celery_app.task(name="app.tasks.reviews.send_review_reminders", ignore_result=True)
def send_review_reminders() -> None:
    """Daily task: remind stakeholders and owners of reviews opening soon."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        _send_reminders(db, datetime.now(timezone.utc))
    except Exception as e:
        db.rollback()
        logger.exception("Failed to send review reminders: %s", e)
    finally:
        db.close()


def _send_reminders(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    now: datetime,
) -> int:
    from sqlalchemy import select
    from sqlalchemy.orm import selectinload

    from app.models.docman import Document
    from app.services.event import EventType, publish_event
    from app.services.notification import Notifications

    documents = db.scalars(
        select(Document)
        .options(selectinload(Document.stakeholders), selectinload(Document.owners))
        .where(
            Document.opens_for_review.is_not(None),
            Document.opens_for_review >= now,
            Document.opens_for_review <= now + REMINDER_WINDOW,
        )
    ).all()

    reminded = []
    for document in documents:
        recipients = {p.id: p for p in list(document.stakeholders) + list(document.owners)}
        for recipient_id in recipients:
            Notifications.document_review_due(
                db, recipient_id, document, document.opens_for_review
            )
        if recipients:
            reminded.append((document, list(recipients)))
    db.commit()

    for document, recipient_ids in reminded:
        publish_event(
            EventType.review_due,
            entity_type="document",
            entity_id=document.id,
            document_id=document.id,
            payload={
                "recipients": [str(r) for r in recipient_ids],
                "document_title": document.title,
                "due_date": document.opens_for_review.date().isoformat(),
            },
        )
    logger.info("Sent review reminders for %d documents", len(reminded))
    return len(reminded)


@celery_app.task(
    name="app.tasks.reviews.mark_overdue_assignments", ignore_result=True
)
def mark_overdue_assignments() -> None:
    """Hourly task: flag active review assignments past their due date."""
    from app.db import SessionLocal
    from app.services.review import Reviews

    db = SessionLocal()
    try:
        Reviews.mark_overdue(db)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to mark overdue review assignments: %s", e)
    finally:
        db.close()
