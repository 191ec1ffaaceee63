from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.docman import ReviewStatus
from app.schemas.docman import BookDocumentSummary
from app.schemas.user import UserSummary


class ReviewAssigneeInput(BaseModel):
    assignee_id: UUID
    due_date: datetime
    notes: str | None = None


class ReviewAssignmentCreate(BaseModel):
    document_id: UUID
    assignments: list[ReviewAssigneeInput] = Field(min_length=1)


class ReviewAssignmentUpdate(BaseModel):
    status: ReviewStatus | None = None
    notes: str | None = None
    requires_updates: bool | None = None
    update_notes: str | None = None
    due_date: datetime | None = None


class ReviewAssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document: BookDocumentSummary
    assignee: UserSummary
    assigned_by: UserSummary
    assigned_date: datetime
    due_date: datetime
    status: ReviewStatus
    completed_date: datetime | None = None
    notes: str | None = None
    requires_updates: bool = False
    update_notes: str | None = None
    update_assignment_id: UUID | None = None
    created_at: datetime
    updated_at: datetime
