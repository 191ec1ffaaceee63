from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from app.errors import (
    authorization_error,
    conflict,
    format_validation_errors,
    not_found,
)
from app.models.docman import (
    Document,
    Project,
    ReviewAssignment,
    Team,
    TeamInvitation,
    TeamMember,
    TeamRole,
)
from app.models.user import User, UserRole
from app.schemas.user import UserRead, UserUpdate
from app.services import analytics, avatar, validation
from app.services.access import (
    ADMIN_EDITABLE_USER_FIELDS,
    can_access_user,
    can_assign_role,
    can_edit_user,
    is_superadmin,
    sees_private_user_fields,
)
from app.services.auth import hash_password
from app.services.common import get_or_404, page_window, pagination_meta
from app.services.document_query import escape_like
from app.services.event import EventType, publish_event
from app.services.storage import UploadedFile

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
SEARCH_MAX_LENGTH = 100

SORT_FIELDS = {
    "firstname": User.firstname,
    "lastname": User.lastname,
    "email": User.email,
    "role": User.role,
    "created_at": User.created_at,
    "createdAt": User.created_at,
}

PRIVATE_FIELDS = ("telephone", "title", "department", "bio", "theme")


def serialize_user(user: User, requester: User) -> dict[str, Any]:
    """Read model for ``user`` with private fields blanked for outsiders."""
    data = UserRead.model_validate(user).model_dump(mode="json")
    if not sees_private_user_fields(requester, user.id):
        for key in PRIVATE_FIELDS:
            data[key] = None
    return data


def build_user_filter(params: Mapping[str, Any]) -> list:
    conditions = []
    search = params.get("search")
    if isinstance(search, str) and 0 < len(search.strip()) <= SEARCH_MAX_LENGTH:
        term = search.strip()
        pattern = f"%{escape_like(term)}%"
        if len(term.split()) == 1:
            conditions.append(
                or_(
                    User.firstname.ilike(pattern, escape="\\"),
                    User.lastname.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                    User.username.ilike(pattern, escape="\\"),
                )
            )
        else:
            first_last = User.firstname + " " + User.lastname
            last_first = User.lastname + " " + User.firstname
            conditions.append(
                or_(
                    first_last.ilike(pattern, escape="\\"),
                    last_first.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                    User.username.ilike(pattern, escape="\\"),
                )
            )
    role = params.get("role")
    if isinstance(role, str) and role in validation.VALID_ROLES:
        conditions.append(User.role == UserRole(role))
    return conditions


def build_user_sort(sort_by: str | None, sort_order: str | None):
    column = SORT_FIELDS.get(sort_by or "", User.firstname)
    return column.asc() if sort_order in (None, "asc") else column.desc()


def _validate_update(payload: UserUpdate) -> dict[str, Any]:
    data = payload.model_dump(exclude_unset=True)
    validators = {
        "firstname": lambda v: validation.validate_name(v, "First name"),
        "lastname": lambda v: validation.validate_name(v, "Last name"),
        "email": validation.validate_email,
        "username": validation.validate_username,
        "password": validation.validate_password,
        "role": validation.validate_role,
        "telephone": validation.validate_phone,
        "title": validation.validate_title,
    }
    errors = []
    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        check = validators.get(key)
        if check is None:
            sanitized[key] = validation.sanitize_string(value) if value else value
            continue
        result = check(value)
        if not result.is_valid:
            errors.append((key, result.error))
        else:
            sanitized[key] = result.sanitized
    if errors:
        raise format_validation_errors(errors)
    return sanitized


# Columns that must keep pointing at a live user.
OWNERSHIP_COLUMNS = (
    (Document, "author_id"),
    (ReviewAssignment, "assigned_by_id"),
    (TeamInvitation, "invited_by_id"),
    (Project, "owner_id"),
)


def _hand_over_ownership(db: Session, user: User, successor: User) -> None:
    for model, attr in OWNERSHIP_COLUMNS:
        column = getattr(model, attr)
        db.execute(
            update(model).where(column == user.id).values({attr: successor.id})
        )
    for team in db.scalars(select(Team).where(Team.owner_id == user.id)).all():
        team.owner_id = successor.id
        if not any(m.user_id == successor.id for m in team.members):
            team.members.append(TeamMember(user_id=successor.id, role=TeamRole.admin))
    db.flush()


class Users:
    @staticmethod
    def list(
        db: Session,
        params: Mapping[str, Any],
        requester: User,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict:
        page, limit, offset = page_window(page, limit, MAX_PAGE_SIZE)
        conditions = build_user_filter(params)
        count_stmt = select(func.count(User.id))
        stmt = select(User)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            stmt = stmt.where(*conditions)
        total = db.scalar(count_stmt) or 0
        stmt = stmt.order_by(
            build_user_sort(params.get("sort_by"), params.get("sort_order")), User.id
        )
        items = db.scalars(stmt.limit(limit).offset(offset)).all()
        return {
            "items": [serialize_user(u, requester) for u in items],
            "pagination": pagination_meta(total, page, limit),
        }

    @staticmethod
    def get(db: Session, user_id: str) -> User:
        return get_or_404(db, User, user_id, "User")

    @staticmethod
    def _own_profile(db: Session, user_id: str, requester: User) -> User:
        if not can_access_user(requester, user_id):
            raise authorization_error("Access denied")
        return Users.get(db, user_id)

    @staticmethod
    def update(
        db: Session, user_id: str, payload: UserUpdate, requester: User
    ) -> User:
        user = Users.get(db, user_id)
        if not can_edit_user(requester, user):
            raise authorization_error("Access denied")
        if not can_access_user(requester, user.id):
            sent = set(payload.model_dump(exclude_unset=True))
            if sent - ADMIN_EDITABLE_USER_FIELDS:
                raise authorization_error(
                    "Admins may only change the role and password of other users"
                )
        data = _validate_update(payload)

        if "email" in data:
            taken = db.scalar(
                select(User.id).where(
                    func.lower(User.email) == data["email"], User.id != user.id
                )
            )
            if taken:
                raise conflict("Email already in use")
        if "username" in data:
            taken = db.scalar(
                select(User.id).where(
                    func.lower(User.username) == data["username"].lower(),
                    User.id != user.id,
                )
            )
            if taken:
                raise conflict("Username already in use")
        if "password" in data:
            user.password_hash = hash_password(data.pop("password"))
        if "role" in data:
            new_role = data.pop("role")
            if can_assign_role(requester, new_role):
                user.role = UserRole(new_role)
            else:
                logger.warning(
                    "User %s may not assign role %s; ignored", requester.id, new_role
                )

        for key, value in data.items():
            if key in PRIVATE_FIELDS and not value:
                value = None
            setattr(user, key, value)
        user.last_updated_by_id = requester.id
        db.commit()
        db.refresh(user)
        logger.info("Updated user %s", user.id)
        publish_event(
            EventType.user_updated,
            entity_type="user",
            entity_id=user.id,
            actor_id=requester.id,
            payload={"fields": sorted(payload.model_dump(exclude_unset=True).keys())},
        )
        return user

    @staticmethod
    def delete(db: Session, user_id: str, requester: User) -> None:
        if not is_superadmin(requester):
            raise authorization_error("Insufficient permissions")
        if str(requester.id) == str(user_id):
            raise authorization_error("Cannot delete your own account")
        user = get_or_404(db, User, user_id, "User")
        images = (user.profile_picture, user.background_image)
        _hand_over_ownership(db, user, requester)
        db.delete(user)
        db.commit()
        analytics.invalidate_document_caches()
        for url in images:
            avatar.delete_image(url)
        logger.info("Deleted user %s", user_id)
        publish_event(
            EventType.user_deleted,
            entity_type="user",
            entity_id=user_id,
            actor_id=requester.id,
        )

    # ------------------------------------------------------------------
    # Profile images
    # ------------------------------------------------------------------

    @staticmethod
    def upload_image(
        db: Session, user_id: str, upload: UploadedFile, kind: str, requester: User
    ) -> User:
        user = Users._own_profile(db, user_id, requester)
        url = avatar.save_image(upload, str(user.id), kind)
        attr = "profile_picture" if kind == "profile" else "background_image"
        previous = getattr(user, attr)
        setattr(user, attr, url)
        db.commit()
        db.refresh(user)
        avatar.delete_image(previous)
        logger.info("Stored %s image for user %s", kind, user.id)
        return user

    @staticmethod
    def delete_image(db: Session, user_id: str, kind: str, requester: User) -> User:
        user = Users._own_profile(db, user_id, requester)
        attr = "profile_picture" if kind == "profile" else "background_image"
        previous = getattr(user, attr)
        if not previous:
            raise not_found("Image")
        setattr(user, attr, None)
        db.commit()
        db.refresh(user)
        avatar.delete_image(previous)
        return user


users = Users()
