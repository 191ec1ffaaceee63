import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    document_created = "document.created"
    document_updated = "document.updated"
    document_deleted = "document.deleted"
    document_file_uploaded = "document.file_uploaded"
    document_review_completed = "document.review_completed"

    review_assigned = "review.assigned"
    review_updated = "review.updated"
    review_follow_up_created = "review.follow_up_created"
    review_due = "review.due"

    team_invitation_sent = "team.invitation_sent"
    team_invitation_accepted = "team.invitation_accepted"

    user_updated = "user.updated"
    user_deleted = "user.deleted"
    password_reset_requested = "user.password_reset_requested"


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    document_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing.

    Queues a Celery task that fans out to email delivery. Never raises;
    failures are logged.
    """
    try:
        from app.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            document_id=str(document_id) if document_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
