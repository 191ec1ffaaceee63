from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.models.user import User
from app.schemas.collaboration import (
    CollaboratorRequest,
    ProjectBookRequest,
    ProjectCollaboratorRead,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
)
from app.schemas.docman import BookDocumentRequest
from app.services.project import projects

router = APIRouter(prefix="/projects", tags=["projects"])


def _list_params(
    search: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = None,
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
) -> dict:
    return {
        "search": search,
        "status": status_filter,
        "priority": priority,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }


@router.get("/my-projects", response_model=list[ProjectRead])
def list_my_projects(
    params: dict = Depends(_list_params),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return projects.list_mine(db, params, user)


@router.get("/team/{team_id}", response_model=list[ProjectRead])
def list_team_projects(
    team_id: str,
    params: dict = Depends(_list_params),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return projects.list_for_team(db, team_id, params, user)


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return projects.create(db, payload, user)


@router.get("/{project_id}", response_model=ProjectRead)
def get_project(
    project_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return projects.get(db, project_id, user)


@router.put("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return projects.update(db, project_id, payload, user)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: str,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    projects.delete(db, project_id, user)


# ------------------------------------------------------------------
# Collaborators
# ------------------------------------------------------------------


@router.get(
    "/{project_id}/collaborators", response_model=list[ProjectCollaboratorRead]
)
def list_collaborators(
    project_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return projects.get(db, project_id, user).collaborators


@router.post("/{project_id}/collaborators", response_model=ProjectRead)
def add_collaborator(
    project_id: str,
    payload: CollaboratorRequest,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return projects.add_collaborator(db, project_id, payload, user)


@router.delete("/{project_id}/collaborators/{collaborator_id}", response_model=ProjectRead)
def remove_collaborator(
    project_id: str,
    collaborator_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return projects.remove_collaborator(db, project_id, collaborator_id, user)


# ------------------------------------------------------------------
# Documents and books
# ------------------------------------------------------------------


@router.post("/{project_id}/documents", response_model=ProjectRead)
def add_document(
    project_id: str,
    payload: BookDocumentRequest,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return projects.add_document(db, project_id, payload.document_id, user)


@router.delete("/{project_id}/documents/{document_id}", response_model=ProjectRead)
def remove_document(
    project_id: str,
    document_id: str,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return projects.remove_document(db, project_id, document_id, user)


@router.post("/{project_id}/books", response_model=ProjectRead)
def add_book(
    project_id: str,
    payload: ProjectBookRequest,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return projects.add_book(db, project_id, payload.book_id, user)


@router.delete("/{project_id}/books/{book_id}", response_model=ProjectRead)
def remove_book(
    project_id: str,
    book_id: str,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return projects.remove_book(db, project_id, book_id, user)
