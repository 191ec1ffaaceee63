from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.models.user import User
from app.schemas.review import (
    ReviewAssignmentCreate,
    ReviewAssignmentRead,
    ReviewAssignmentUpdate,
)
from app.services.review import reviews

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post(
    "",
    response_model=list[ReviewAssignmentRead],
    status_code=status.HTTP_201_CREATED,
)
def create_review_assignments(
    payload: ReviewAssignmentCreate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return reviews.create_assignments(db, payload, user)


@router.get("/overdue", response_model=list[ReviewAssignmentRead])
def list_overdue_assignments(
    user: User = Depends(require_role("admin")),
    db: Session = Depends(get_db),
):
    return reviews.list_overdue(db)


@router.get("/document/{document_id}", response_model=list[ReviewAssignmentRead])
def list_document_assignments(
    document_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return reviews.list_for_document(db, document_id, user)


@router.get("/user/{user_id}", response_model=list[ReviewAssignmentRead])
def list_user_assignments(
    user_id: str,
    status_filter: str | None = Query(default=None, alias="status"),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return reviews.list_for_user(db, user_id, status_filter, user)


@router.put("/{assignment_id}", response_model=ReviewAssignmentRead)
def update_review_assignment(
    assignment_id: str,
    payload: ReviewAssignmentUpdate,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return reviews.update(db, assignment_id, payload, user)
