from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.user import User
from app.schemas.common import ListResponse
from app.schemas.notification import (
    MarkReadRequest,
    NotificationRead,
    UnreadCountResponse,
)
from app.services.notification import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    user: User = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return {"count": notifications.unread_count(db, user)}


@router.get("", response_model=ListResponse[NotificationRead])
def list_notifications(
    notification_type: str | None = Query(default=None, alias="type"),
    is_read: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return notifications.list_response(
        db, user, notification_type, is_read, order_by, order_dir, limit, offset
    )


@router.patch("/read-all")
def mark_all_read(
    user: User = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return {"marked": notifications.mark_all_read(db, user)}


@router.post("/mark-read")
def mark_read(
    payload: MarkReadRequest,
    user: User = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    count = notifications.mark_read(
        db, [str(nid) for nid in payload.notification_ids], user
    )
    return {"marked": count}


@router.patch("/{notification_id}/read")
def mark_one_read(
    notification_id: str,
    user: User = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    notifications.get(db, notification_id, user)
    return {"marked": notifications.mark_read(db, [notification_id], user)}


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(
    notification_id: str,
    user: User = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return notifications.get(db, notification_id, user)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    user: User = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    notifications.delete(db, notification_id, user)
