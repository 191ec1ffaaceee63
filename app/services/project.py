from __future__ import annotations

import logging
from typing import Any, List, Mapping

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from app.errors import authorization_error, conflict, not_found, validation_error
from app.models.docman import (
    Book,
    CollaboratorRole,
    Document,
    Project,
    ProjectCollaborator,
    ProjectPriority,
    ProjectStatus,
    Team,
    as_utc,
)
from app.models.user import User
from app.schemas.collaboration import CollaboratorRequest, ProjectCreate, ProjectUpdate
from app.services.access import (
    can_delete_project,
    can_manage_project,
    can_view_project,
    can_view_team,
    is_team_member,
    project_role,
)
from app.services.common import coerce_uuid, get_or_404
from app.services.document_query import escape_like
from app.services.validation import sanitize_string

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "name": Project.name,
    "created_at": Project.created_at,
    "createdAt": Project.created_at,
    "status": Project.status,
    "priority": Project.priority,
    "start_date": Project.start_date,
    "startDate": Project.start_date,
    "end_date": Project.end_date,
    "endDate": Project.end_date,
}

_PROJECT_LOADERS = (
    selectinload(Project.owner),
    selectinload(Project.collaborators).selectinload(ProjectCollaborator.user),
    selectinload(Project.documents),
    selectinload(Project.books),
)


def _clean_tags(tags) -> list[str]:
    cleaned = (sanitize_string(tag, 50) for tag in tags or [])
    return [tag for tag in cleaned if tag]


def _project_filters(stmt, params: Mapping[str, Any]):
    search = params.get("search")
    if isinstance(search, str) and search.strip():
        pattern = f"%{escape_like(search.strip()[:100])}%"
        stmt = stmt.where(
            or_(
                Project.name.ilike(pattern, escape="\\"),
                Project.description.ilike(pattern, escape="\\"),
            )
        )
    status = params.get("status")
    if status in {s.value for s in ProjectStatus}:
        stmt = stmt.where(Project.status == ProjectStatus(status))
    priority = params.get("priority")
    if priority in {p.value for p in ProjectPriority}:
        stmt = stmt.where(Project.priority == ProjectPriority(priority))
    column = SORT_FIELDS.get(params.get("sort_by") or "", Project.created_at)
    order = column.asc() if params.get("sort_order") == "asc" else column.desc()
    return stmt.order_by(order, Project.id)


class Projects:
    @staticmethod
    def list_for_team(
        db: Session, team_id: str, params: Mapping[str, Any], user: User
    ) -> List[Project]:
        team = get_or_404(db, Team, team_id, "Team")
        if not can_view_team(user, team):
            raise authorization_error("Access denied")
        stmt = select(Project).options(*_PROJECT_LOADERS).where(Project.team_id == team.id)
        return db.scalars(_project_filters(stmt, params)).all()

    @staticmethod
    def list_mine(db: Session, params: Mapping[str, Any], user: User) -> List[Project]:
        collaborating = select(ProjectCollaborator.project_id).where(
            ProjectCollaborator.user_id == user.id
        )
        stmt = (
            select(Project)
            .options(*_PROJECT_LOADERS)
            .where(or_(Project.owner_id == user.id, Project.id.in_(collaborating)))
        )
        return db.scalars(_project_filters(stmt, params)).all()

    @staticmethod
    def get(db: Session, project_id: str, user: User) -> Project:
        project = get_or_404(db, Project, project_id, "Project")
        if not can_view_project(user, project):
            raise authorization_error("Access denied")
        return project

    @staticmethod
    def create(db: Session, payload: ProjectCreate, user: User) -> Project:
        name = sanitize_string(payload.name, 100)
        if not name:
            raise validation_error("Validation failed: Project name is required")
        if (
            payload.start_date
            and payload.end_date
            and as_utc(payload.end_date) < as_utc(payload.start_date)
        ):
            raise validation_error("Validation failed: End date must be after start date")
        team = get_or_404(db, Team, str(payload.team_id), "Team")
        if not can_view_team(user, team):
            raise authorization_error("Access denied")

        data = payload.model_dump(exclude={"name", "description", "tags", "team_id"})
        if data.get("start_date") is None:
            data.pop("start_date")
        project = Project(
            name=name,
            description=sanitize_string(payload.description, 1000) or None,
            team_id=team.id,
            owner_id=user.id,
            tags=_clean_tags(payload.tags),
            **data,
        )
        project.collaborators.append(
            ProjectCollaborator(user_id=user.id, role=CollaboratorRole.manager)
        )
        db.add(project)
        db.commit()
        db.refresh(project)
        logger.info("Created project %s", project.id)
        return project

    @staticmethod
    def update(
        db: Session, project_id: str, payload: ProjectUpdate, user: User
    ) -> Project:
        project = get_or_404(db, Project, project_id, "Project")
        if not can_manage_project(user, project):
            raise authorization_error("Access denied")
        data = payload.model_dump(exclude_unset=True)
        if "name" in data:
            name = sanitize_string(data.pop("name"), 100)
            if not name:
                raise validation_error("Validation failed: Project name is required")
            project.name = name
        if "description" in data:
            project.description = sanitize_string(data.pop("description"), 1000) or None
        if "tags" in data:
            project.tags = _clean_tags(data.pop("tags"))
        for key, value in data.items():
            if value is None and key not in ("end_date",):
                continue
            setattr(project, key, value)
        if (
            project.start_date is not None
            and project.end_date is not None
            and as_utc(project.end_date) < as_utc(project.start_date)
        ):
            raise validation_error("Validation failed: End date must be after start date")
        db.commit()
        db.refresh(project)
        logger.info("Updated project %s", project.id)
        return project

    @staticmethod
    def delete(db: Session, project_id: str, user: User) -> None:
        project = get_or_404(db, Project, project_id, "Project")
        if not can_delete_project(user, project):
            raise authorization_error("Access denied")
        db.delete(project)
        db.commit()
        logger.info("Deleted project %s", project_id)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @staticmethod
    def add_collaborator(
        db: Session, project_id: str, payload: CollaboratorRequest, user: User
    ) -> Project:
        project = get_or_404(db, Project, project_id, "Project")
        if not can_manage_project(user, project):
            raise authorization_error("Access denied")
        if not is_team_member(project.team, payload.user_id):
            raise validation_error("User must be a team member")
        if project_role(project, payload.user_id) is not None:
            raise conflict("User is already a collaborator")
        project.collaborators.append(
            ProjectCollaborator(user_id=payload.user_id, role=payload.role)
        )
        db.commit()
        db.refresh(project)
        logger.info("Added collaborator %s to project %s", payload.user_id, project.id)
        return project

    @staticmethod
    def remove_collaborator(
        db: Session, project_id: str, collaborator_id: str, user: User
    ) -> Project:
        project = get_or_404(db, Project, project_id, "Project")
        leaving_self = str(user.id) == str(collaborator_id)
        if not leaving_self and not can_manage_project(user, project):
            raise authorization_error("Access denied")
        if str(project.owner_id) == str(collaborator_id):
            raise validation_error("Cannot remove project owner")
        target = coerce_uuid(collaborator_id)
        remaining = [c for c in project.collaborators if c.user_id != target]
        if len(remaining) == len(project.collaborators):
            raise not_found("Collaborator")
        project.collaborators = remaining
        db.commit()
        db.refresh(project)
        logger.info("Removed collaborator %s from project %s", collaborator_id, project.id)
        return project

    # ------------------------------------------------------------------
    # Documents and books
    # ------------------------------------------------------------------

    @staticmethod
    def add_document(db: Session, project_id: str, document_id, user: User) -> Project:
        project = Projects.get(db, project_id, user)
        document = get_or_404(db, Document, str(document_id), "Document")
        if document in project.documents:
            raise conflict("Document already in project")
        project.documents.append(document)
        db.commit()
        db.refresh(project)
        logger.info("Added document %s to project %s", document.id, project.id)
        return project

    @staticmethod
    def remove_document(
        db: Session, project_id: str, document_id, user: User
    ) -> Project:
        project = Projects.get(db, project_id, user)
        project.documents = [
            d for d in project.documents if str(d.id) != str(document_id)
        ]
        db.commit()
        db.refresh(project)
        logger.info("Removed document %s from project %s", document_id, project.id)
        return project

    @staticmethod
    def add_book(db: Session, project_id: str, book_id, user: User) -> Project:
        project = Projects.get(db, project_id, user)
        book = get_or_404(db, Book, str(book_id), "Book")
        if book in project.books:
            raise conflict("Book already in project")
        project.books.append(book)
        db.commit()
        db.refresh(project)
        logger.info("Added book %s to project %s", book.id, project.id)
        return project

    @staticmethod
    def remove_book(db: Session, project_id: str, book_id, user: User) -> Project:
        project = Projects.get(db, project_id, user)
        project.books = [b for b in project.books if str(b.id) != str(book_id)]
        db.commit()
        db.refresh(project)
        logger.info("Removed book %s from project %s", book_id, project.id)
        return project


projects = Projects()
