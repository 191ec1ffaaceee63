from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.errors import (
    authorization_error,
    conflict,
    not_found,
    validation_error,
)
from app.models.docman import (
    Book,
    Document,
    InvitationStatus,
    NotificationType,
    Team,
    TeamInvitation,
    TeamMember,
    TeamRole,
    as_utc,
)
from app.models.user import User
from app.schemas.collaboration import TeamCreate, TeamInviteRequest, TeamUpdate
from app.services.access import (
    can_delete_team,
    can_invite_to_team,
    can_manage_team,
    can_view_team,
    is_team_member,
)
from app.services.common import coerce_uuid, get_or_404
from app.services.document_query import escape_like
from app.services.event import EventType, publish_event
from app.services.notification import Notifications
from app.services.validation import (
    sanitize_email,
    sanitize_string,
    validate_email,
    validate_team_name,
)

logger = logging.getLogger(__name__)

INVITATION_TTL_DAYS = 7

SORT_FIELDS = {
    "name": Team.name,
    "created_at": Team.created_at,
    "createdAt": Team.created_at,
}

_TEAM_LOADERS = (
    selectinload(Team.owner),
    selectinload(Team.members).selectinload(TeamMember.user),
    selectinload(Team.documents),
    selectinload(Team.books),
)


def _team_name(value: str) -> str:
    result = validate_team_name(value)
    if not result.is_valid:
        raise validation_error(f"Validation failed: {result.error}")
    return sanitize_string(result.sanitized, 100)


def _member(team: Team, user_id) -> TeamMember | None:
    user_id = coerce_uuid(user_id)
    for member in team.members:
        if member.user_id == user_id:
            return member
    return None


class Teams:
    @staticmethod
    def list_mine(db: Session, user: User) -> List[Team]:
        member_of = select(TeamMember.team_id).where(TeamMember.user_id == user.id)
        return db.scalars(
            select(Team)
            .options(*_TEAM_LOADERS)
            .where(or_(Team.owner_id == user.id, Team.id.in_(member_of)))
            .order_by(Team.created_at.desc())
        ).all()

    @staticmethod
    def list_all(db: Session, params: Mapping[str, Any]) -> List[Team]:
        stmt = select(Team).options(*_TEAM_LOADERS)
        search = params.get("search")
        if isinstance(search, str) and search.strip():
            pattern = f"%{escape_like(search.strip()[:100])}%"
            stmt = stmt.where(
                or_(
                    Team.name.ilike(pattern, escape="\\"),
                    Team.description.ilike(pattern, escape="\\"),
                )
            )
        column = SORT_FIELDS.get(params.get("sort_by") or "", Team.created_at)
        order = column.asc() if params.get("sort_order") == "asc" else column.desc()
        return db.scalars(stmt.order_by(order, Team.id)).all()

    @staticmethod
    def get(db: Session, team_id: str, user: User) -> Team:
        team = get_or_404(db, Team, team_id, "Team")
        if not can_view_team(user, team):
            raise authorization_error("Access denied")
        return team

    @staticmethod
    def create(db: Session, payload: TeamCreate, user: User) -> Team:
        name = _team_name(payload.name)
        existing = db.scalar(
            select(Team.id).where(Team.owner_id == user.id, Team.name == name)
        )
        if existing:
            raise conflict("You already have a team with this name")
        team = Team(
            name=name,
            description=sanitize_string(payload.description, 500) or None,
            owner_id=user.id,
            is_private=payload.is_private,
            allow_member_invites=payload.allow_member_invites,
        )
        team.members.append(TeamMember(user_id=user.id, role=TeamRole.admin))
        db.add(team)
        db.commit()
        db.refresh(team)
        logger.info("Created team %s", team.id)
        return team

    @staticmethod
    def update(db: Session, team_id: str, payload: TeamUpdate, user: User) -> Team:
        team = get_or_404(db, Team, team_id, "Team")
        if not can_manage_team(user, team):
            raise authorization_error("Access denied")
        data = payload.model_dump(exclude_unset=True)
        if data.get("name") is not None:
            name = _team_name(data["name"])
            clash = db.scalar(
                select(Team.id).where(
                    Team.owner_id == team.owner_id, Team.name == name, Team.id != team.id
                )
            )
            if clash:
                raise conflict("You already have a team with this name")
            team.name = name
        if "description" in data:
            team.description = sanitize_string(data["description"], 500) or None
        for key in ("is_private", "allow_member_invites"):
            if data.get(key) is not None:
                setattr(team, key, data[key])
        db.commit()
        db.refresh(team)
        logger.info("Updated team %s", team.id)
        return team

    @staticmethod
    def delete(db: Session, team_id: str, user: User) -> None:
        team = get_or_404(db, Team, team_id, "Team")
        if not can_delete_team(user, team):
            raise authorization_error("Access denied")
        db.delete(team)
        db.commit()
        logger.info("Deleted team %s", team_id)

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    @staticmethod
    def invite(
        db: Session, team_id: str, payload: TeamInviteRequest, user: User
    ) -> TeamInvitation:
        result = validate_email(payload.email)
        if not result.is_valid:
            raise validation_error("Valid email is required")
        email = result.sanitized

        team = get_or_404(db, Team, team_id, "Team")
        if not can_invite_to_team(user, team):
            raise authorization_error("Access denied")

        invitee = db.scalar(select(User).where(func.lower(User.email) == email))
        if invitee is not None and is_team_member(team, invitee.id):
            raise conflict("User is already a team member")
        pending = [
            inv
            for inv in team.invitations
            if inv.email == email and inv.status == InvitationStatus.pending
        ]
        if pending:
            raise conflict("Invitation already sent")

        invitation = TeamInvitation(
            team_id=team.id,
            email=email,
            role=payload.role,
            invited_by_id=user.id,
            token=secrets.token_hex(32),
            expires_at=datetime.now(timezone.utc) + timedelta(days=INVITATION_TTL_DAYS),
        )
        db.add(invitation)
        if invitee is not None:
            Notifications.team_invitation(db, invitee, team, user, invitation.token)
        db.commit()
        db.refresh(invitation)
        logger.info("Invited %s to team %s", invitation.id, team.id)
        publish_event(
            EventType.team_invitation_sent,
            entity_type="team",
            entity_id=team.id,
            actor_id=user.id,
            payload={
                "email": email,
                "team_name": team.name,
                "invited_by": user.full_name,
                "accept_url": f"{settings.frontend_url}/teams/accept/{invitation.token}",
            },
        )
        return invitation

    @staticmethod
    def _pending_invitation(db: Session, token: str) -> TeamInvitation:
        invitation = db.scalar(select(TeamInvitation).where(TeamInvitation.token == token))
        if invitation is None:
            raise not_found("Invitation")
        now = datetime.now(timezone.utc)
        if invitation.status != InvitationStatus.pending or as_utc(invitation.expires_at) < now:
            raise validation_error("Invitation expired or invalid")
        return invitation

    @staticmethod
    def accept_invitation(db: Session, token: str, user: User) -> Team:
        invitation = Teams._pending_invitation(db, token)
        if sanitize_email(user.email) != invitation.email:
            raise authorization_error("Email mismatch")
        team = invitation.team
        if is_team_member(team, user.id):
            raise conflict("Already a team member")

        team.members.append(TeamMember(user_id=user.id, role=invitation.role))
        invitation.status = InvitationStatus.accepted
        Notifications.notify(
            db,
            invitation.invited_by_id,
            NotificationType.team_invitation_accepted,
            title=f"Invitation accepted: {team.name}",
            message=f"{user.full_name} joined the team {team.name}.",
            sender_id=user.id,
            team_id=team.id,
        )
        db.commit()
        db.refresh(team)
        logger.info("User %s joined team %s", user.id, team.id)
        publish_event(
            EventType.team_invitation_accepted,
            entity_type="team",
            entity_id=team.id,
            actor_id=user.id,
        )
        return team

    @staticmethod
    def decline_invitation(db: Session, token: str, user: User) -> None:
        invitation = Teams._pending_invitation(db, token)
        if sanitize_email(user.email) != invitation.email:
            raise authorization_error("Email mismatch")
        invitation.status = InvitationStatus.declined
        Notifications.notify(
            db,
            invitation.invited_by_id,
            NotificationType.team_invitation_declined,
            title=f"Invitation declined: {invitation.team.name}",
            message=f"{user.full_name} declined to join the team {invitation.team.name}.",
            sender_id=user.id,
            team_id=invitation.team_id,
        )
        db.commit()
        logger.info("User %s declined invitation %s", user.id, invitation.id)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    @staticmethod
    def remove_member(db: Session, team_id: str, member_id: str, user: User) -> Team:
        team = get_or_404(db, Team, team_id, "Team")
        leaving_self = str(user.id) == str(member_id)
        if not leaving_self and not can_manage_team(user, team):
            raise authorization_error("Access denied")
        if str(team.owner_id) == str(member_id):
            raise validation_error("Cannot remove team owner")
        member = _member(team, member_id)
        if member is None:
            raise not_found("Member")
        team.members.remove(member)
        db.commit()
        db.refresh(team)
        logger.info("Removed member %s from team %s", member_id, team.id)
        return team

    @staticmethod
    def update_member_role(
        db: Session, team_id: str, member_id: str, role: TeamRole, user: User
    ) -> Team:
        team = get_or_404(db, Team, team_id, "Team")
        if not can_manage_team(user, team):
            raise authorization_error("Access denied")
        if str(team.owner_id) == str(member_id):
            raise validation_error("Cannot change team owner role")
        member = _member(team, member_id)
        if member is None:
            raise not_found("Member")
        member.role = role
        db.commit()
        db.refresh(team)
        logger.info("Set role %s for member %s of team %s", role.value, member_id, team.id)
        return team

    # ------------------------------------------------------------------
    # Shared documents and books
    # ------------------------------------------------------------------

    @staticmethod
    def attach(
        db: Session, team_id: str, user: User, document_id=None, book_id=None
    ) -> Team:
        team = Teams.get(db, team_id, user)
        if document_id is None and book_id is None:
            raise validation_error("document_id or book_id is required")
        if document_id is not None:
            document = get_or_404(db, Document, str(document_id), "Document")
            if document not in team.documents:
                team.documents.append(document)
        if book_id is not None:
            book = get_or_404(db, Book, str(book_id), "Book")
            if book not in team.books:
                team.books.append(book)
        db.commit()
        db.refresh(team)
        logger.info("Updated shared items of team %s", team.id)
        return team

    @staticmethod
    def detach(
        db: Session, team_id: str, user: User, document_id=None, book_id=None
    ) -> Team:
        team = Teams.get(db, team_id, user)
        if document_id is not None:
            team.documents = [d for d in team.documents if str(d.id) != str(document_id)]
        if book_id is not None:
            team.books = [b for b in team.books if str(b.id) != str(book_id)]
        db.commit()
        db.refresh(team)
        logger.info("Updated shared items of team %s", team.id)
        return team


teams = Teams()
