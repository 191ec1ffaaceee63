import logging

from prometheus_client import Counter

from app.celery_app import celery_app

logger = logging.getLogger(__name__)

EVENTS_PROCESSED = Counter(
    "docman_events_processed_total",
    "Events consumed by the fan-out task",
    ["event_type"],
)


@celery_app.task(name="app.tasks.events.process_event", ignore_result=True)
def process_event(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    document_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Turn a published DocMan event into email.

    In-app notifications were already written by the service that made the
    change. Event types without an email template stop here.
    """
    from app.tasks.notifications import EMAIL_TEMPLATES, dispatch_notifications

    EVENTS_PROCESSED.labels(event_type).inc()
    logger.info("Processing event %s for %s/%s", event_type, entity_type, entity_id)
    if event_type not in EMAIL_TEMPLATES:
        return

    try:
        dispatch_notifications.delay(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            document_id=document_id,
            payload=payload or {},
        )
    except Exception as e:
        logger.exception("Failed to queue emails for %s: %s", event_type, e)
