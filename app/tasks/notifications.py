import logging
import smtplib
from email.message import EmailMessage

from app.celery_app import celery_app
from app.config import settings

logger = logging.getLogger(__name__)


def _review_assigned(payload: dict) -> tuple[str, str]:
    title = payload.get("document_title", "a document")
    body = (
        f"{payload.get('assigned_by', 'A colleague')} assigned you to review "
        f"'{title}'.\nDue: {payload.get('due_date', 'not set')}"
    )
    if payload.get("notes"):
        body += f"\nNotes: {payload['notes']}"
    return f"Review assigned: {title}", body


def _review_follow_up(payload: dict) -> tuple[str, str]:
    title = payload.get("document_title", "a document")
    body = (
        f"A review of '{title}' requires updates.\n"
        f"Due: {payload.get('due_date', 'not set')}"
    )
    if payload.get("notes"):
        body += f"\n{payload['notes']}"
    return f"Updates required: {title}", body


def _document_updated(payload: dict) -> tuple[str, str]:
    subject = payload.get("title", "Document updated")
    fields = ", ".join(payload.get("changed_fields") or []) or "details"
    return subject, f"The following were changed: {fields}."


def _team_invitation(payload: dict) -> tuple[str, str]:
    team = payload.get("team_name", "a team")
    body = (
        f"{payload.get('invited_by', 'A colleague')} invited you to join {team}.\n"
        f"Accept the invitation: {payload.get('accept_url', '')}\n"
        "The invitation expires in 7 days."
    )
    return f"Invitation to join {team}", body


def _password_reset(payload: dict) -> tuple[str, str]:
    body = (
        "A password reset was requested for your DocMan account.\n"
        f"Reset your password: {payload.get('reset_url', '')}\n"
        "If you did not request this, you can ignore this email."
    )
    return "Reset your DocMan password", body


def _review_due(payload: dict) -> tuple[str, str]:
    title = payload.get("document_title", "a document")
    return (
        f"Review due: {title}",
        f"'{title}' opens for review on {payload.get('due_date', 'soon')}.",
    )


# event type -> (subject, body) builder; events not listed send no email
EMAIL_TEMPLATES = {
    "review.assigned": _review_assigned,
    "review.follow_up_created": _review_follow_up,
    "review.due": _review_due,
    "document.updated": _document_updated,
    "team.invitation_sent": _team_invitation,
    "user.password_reset_requested": _password_reset,
}


@celery_app.task(
    name="app.tasks.notifications.dispatch_notifications", ignore_result=True
)
def dispatch_notifications(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    document_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Queue emails for an event.

    Recipients come from the payload: ``recipients`` holds user ids that are
    resolved to addresses, ``email`` is a literal address.
    """
    if event_type not in EMAIL_TEMPLATES:
        return

    from app.db import SessionLocal

    db = SessionLocal()
    try:
        _dispatch(db, event_type, actor_id, payload or {})
    except Exception as e:
        logger.exception("Failed to dispatch notifications for %s: %s", event_type, e)
    finally:
        db.close()


def _recipient_emails(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    payload: dict,
    actor_id: str | None,
) -> list[str]:
    from sqlalchemy import select

    from app.models.user import User
    from app.services.common import coerce_uuid

    emails: dict[str, None] = {}
    ids = [
        coerce_uuid(user_id)
        for user_id in payload.get("recipients") or []
        if str(user_id) != str(actor_id)
    ]
    if ids:
        rows = db.scalars(
            select(User.email).where(User.id.in_(ids), User.is_active.is_(True))
        ).all()
        for email in rows:
            emails[email] = None
    if payload.get("email"):
        emails[payload["email"]] = None
    return list(emails)


def _dispatch(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    event_type: str,
    actor_id: str | None,
    payload: dict,
) -> int:
    subject, body = EMAIL_TEMPLATES[event_type](payload)
    recipients = _recipient_emails(db, payload, actor_id)
    for email in recipients:
        send_notification_email.delay(email=email, subject=subject, body=body)
    logger.info("Queued %d emails for event %s", len(recipients), event_type)
    return len(recipients)


@celery_app.task(
    name="app.tasks.notifications.send_notification_email", ignore_result=True
)
def send_notification_email(email: str, subject: str, body: str) -> None:
    """Send one plain-text email; logs instead when no SMTP host is set."""
    if not settings.smtp_host:
        logger.info("SMTP not configured, would send %r to %s", subject, email)
        return

    message = EmailMessage()
    message["From"] = settings.mail_from
    message["To"] = email
    message["Subject"] = subject
    message.set_content(body)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_username:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("Failed to send email to %s: %s", email, e)
        return
    logger.info("Sent email %r to %s", subject, email)
