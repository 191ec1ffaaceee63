"""Capability checks shared by list queries and detail lookups.

Document read access is decided in one place: ``can_read_document`` for a
loaded row and ``document_visibility_clause`` for the equivalent SQL filter.
Both use the same three relations (author, stakeholder, owner).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from sqlalchemy import or_, select

from app.models.docman import Document, document_owners, document_stakeholders
from app.models.user import User, UserRole

ROLE_LEVELS: dict[str, int] = {
    UserRole.viewer.value: 1,
    UserRole.editor.value: 2,
    UserRole.admin.value: 3,
    UserRole.superadmin.value: 4,
}

ADMIN_ROLES = frozenset({UserRole.admin.value, UserRole.superadmin.value})


def role_value(role) -> str:
    return role.value if isinstance(role, UserRole) else str(role)


def role_level(role) -> int:
    return ROLE_LEVELS.get(role_value(role), 0)


def has_role(role, required) -> bool:
    """True when ``role`` sits at or above ``required`` in the hierarchy."""
    return role_level(role) >= role_level(required) > 0


def is_admin(user: User) -> bool:
    return role_value(user.role) in ADMIN_ROLES


def is_superadmin(user: User) -> bool:
    return role_value(user.role) == UserRole.superadmin.value


@dataclass(frozen=True)
class DocumentRelations:
    author_id: uuid.UUID | None
    stakeholder_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)
    owner_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)

    @classmethod
    def of(cls, document: Document) -> "DocumentRelations":
        return cls(
            author_id=document.author_id,
            stakeholder_ids=frozenset(u.id for u in document.stakeholders),
            owner_ids=frozenset(u.id for u in document.owners),
        )

    def members(self) -> frozenset[uuid.UUID]:
        ids = set(self.stakeholder_ids) | set(self.owner_ids)
        if self.author_id is not None:
            ids.add(self.author_id)
        return frozenset(ids)


def can_read_document(user: User, relations: DocumentRelations) -> bool:
    if is_admin(user):
        return True
    return user.id in relations.members()


def can_delete_document(user: User, relations: DocumentRelations) -> bool:
    return is_admin(user) or relations.author_id == user.id


def document_visibility_clause(user: User):
    """SQL filter restricting documents to those ``user`` may read.

    ``None`` for admins; otherwise an OR of exactly three clauses.
    """
    if is_admin(user):
        return None
    return or_(
        Document.author_id == user.id,
        Document.id.in_(
            select(document_stakeholders.c.document_id).where(
                document_stakeholders.c.user_id == user.id
            )
        ),
        Document.id.in_(
            select(document_owners.c.document_id).where(
                document_owners.c.user_id == user.id
            )
        ),
    )


def can_access_user(requester: User, target_id) -> bool:
    return is_superadmin(requester) or str(requester.id) == str(target_id)


ADMIN_EDITABLE_USER_FIELDS = frozenset({"role", "password"})


def can_edit_user(requester: User, target: User) -> bool:
    """Self and superadmins edit anything; admins edit users below superadmin.

    An admin editing someone else is limited to ``ADMIN_EDITABLE_USER_FIELDS``.
    """
    if can_access_user(requester, target.id):
        return True
    return is_admin(requester) and not is_superadmin(target)


def sees_private_user_fields(requester: User, target_id) -> bool:
    return is_admin(requester) or str(requester.id) == str(target_id)


def can_assign_role(requester: User, new_role) -> bool:
    """Superadmins assign any role; admins any but superadmin; others none."""
    if is_superadmin(requester):
        return True
    if role_value(requester.role) == UserRole.admin.value:
        return role_value(new_role) != UserRole.superadmin.value
    return False


# ---------------------------------------------------------------------------
# Books, teams and projects
# ---------------------------------------------------------------------------


def can_modify_book(user: User, book) -> bool:
    return is_admin(user) or any(owner.id == user.id for owner in book.owners)


def team_role(team, user_id) -> str | None:
    for member in team.members:
        if member.user_id == user_id:
            return member.role.value
    return None


def is_team_member(team, user_id) -> bool:
    return team_role(team, user_id) is not None


def can_view_team(user: User, team) -> bool:
    return is_admin(user) or is_team_member(team, user.id)


def can_manage_team(user: User, team) -> bool:
    """Owner, team admin or application admin."""
    if is_admin(user) or team.owner_id == user.id:
        return True
    return team_role(team, user.id) == "admin"


def can_delete_team(user: User, team) -> bool:
    return is_admin(user) or team.owner_id == user.id


def can_invite_to_team(user: User, team) -> bool:
    if can_manage_team(user, team):
        return True
    return bool(team.allow_member_invites) and is_team_member(team, user.id)


def project_role(project, user_id) -> str | None:
    for collaborator in project.collaborators:
        if collaborator.user_id == user_id:
            return collaborator.role.value
    return None


def can_view_project(user: User, project) -> bool:
    if is_admin(user) or project_role(project, user.id) is not None:
        return True
    return is_team_member(project.team, user.id)


def can_manage_project(user: User, project) -> bool:
    """Owner, project manager or application admin."""
    if is_admin(user) or project.owner_id == user.id:
        return True
    return project_role(project, user.id) == "manager"


def can_delete_project(user: User, project) -> bool:
    return is_admin(user) or project.owner_id == user.id
