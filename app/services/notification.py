from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.errors import not_found, validation_error
from app.models.docman import Document, Notification, NotificationType, Team
from app.models.user import User
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
)
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Notifications(ListResponseMixin):
    @staticmethod
    def get(db: Session, notification_id: str, user: User) -> Notification:
        notification = get_or_404(db, Notification, notification_id, "Notification")
        if notification.recipient_id != user.id:
            raise not_found("Notification")
        return notification

    @staticmethod
    def list(
        db: Session,
        user: User,
        notification_type: str | None,
        is_read: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[Notification]:
        query = db.query(Notification).filter(Notification.recipient_id == user.id)
        if notification_type is not None:
            try:
                wanted = NotificationType(notification_type)
            except ValueError:
                raise validation_error(f"Invalid notification type: {notification_type}")
            query = query.filter(Notification.type == wanted)
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Notification.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def mark_read(db: Session, notification_ids: List[str], user: User) -> int:
        now = datetime.now(timezone.utc)
        count = 0
        for nid in notification_ids:
            notification = db.get(Notification, coerce_uuid(nid))
            if (
                notification
                and notification.recipient_id == user.id
                and not notification.is_read
            ):
                notification.is_read = True
                notification.read_at = now
                count += 1
        db.commit()
        logger.info("Marked %d notifications as read", count)
        return count

    @staticmethod
    def mark_all_read(db: Session, user: User) -> int:
        now = datetime.now(timezone.utc)
        notifications = (
            db.query(Notification)
            .filter(
                Notification.recipient_id == user.id,
                Notification.is_read.is_(False),
            )
            .all()
        )
        for n in notifications:
            n.is_read = True
            n.read_at = now
        db.commit()
        logger.info(
            "Marked all %d notifications as read for user %s",
            len(notifications),
            user.id,
        )
        return len(notifications)

    @staticmethod
    def unread_count(db: Session, user: User) -> int:
        return db.scalar(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == user.id,
                Notification.is_read.is_(False),
            )
        )

    @staticmethod
    def delete(db: Session, notification_id: str, user: User) -> None:
        notification = Notifications.get(db, notification_id, user)
        db.delete(notification)
        db.commit()
        logger.info("Deleted notification %s", notification_id)

    # ------------------------------------------------------------------
    # Builders; callers own the commit
    # ------------------------------------------------------------------

    @staticmethod
    def notify(
        db: Session,
        recipient_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        sender_id: uuid.UUID | None = None,
        document_id: uuid.UUID | None = None,
        team_id: uuid.UUID | None = None,
        invitation_token: str | None = None,
    ) -> Notification:
        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=notification_type,
            title=title,
            message=message,
            related_document_id=document_id,
            related_team_id=team_id,
            invitation_token=invitation_token,
        )
        db.add(notification)
        return notification

    @staticmethod
    def team_invitation(
        db: Session, recipient: User, team: Team, inviter: User, token: str
    ) -> Notification:
        return Notifications.notify(
            db,
            recipient.id,
            NotificationType.team_invitation,
            title=f"Invitation to join {team.name}",
            message=f"{inviter.full_name} invited you to join the team {team.name}.",
            sender_id=inviter.id,
            team_id=team.id,
            invitation_token=token,
        )

    @staticmethod
    def document_assigned(
        db: Session, recipient_id: uuid.UUID, document: Document, assigner: User, due: datetime
    ) -> Notification:
        return Notifications.notify(
            db,
            recipient_id,
            NotificationType.document_assigned,
            title=f"Review assigned: {document.title}",
            message=(
                f"{assigner.full_name} assigned you to review '{document.title}' "
                f"by {due.date().isoformat()}."
            ),
            sender_id=assigner.id,
            document_id=document.id,
        )

    @staticmethod
    def document_review_due(
        db: Session, recipient_id: uuid.UUID, document: Document, due: datetime
    ) -> Notification:
        return Notifications.notify(
            db,
            recipient_id,
            NotificationType.document_review_due,
            title=f"Review due: {document.title}",
            message=f"'{document.title}' opens for review on {due.date().isoformat()}.",
            document_id=document.id,
        )

    @staticmethod
    def document_updated(
        db: Session,
        recipient_ids: Iterable[uuid.UUID],
        document: Document,
        actor: User,
    ) -> list[Notification]:
        created = []
        for recipient_id in recipient_ids:
            if recipient_id == actor.id:
                continue
            created.append(
                Notifications.notify(
                    db,
                    recipient_id,
                    NotificationType.document_updated,
                    title=f"Document updated: {document.title}",
                    message=f"{actor.full_name} updated '{document.title}'.",
                    sender_id=actor.id,
                    document_id=document.id,
                )
            )
        return created


notifications = Notifications()
