from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.docman import CategoryType, ReviewInterval, ReviewPeriod
from app.schemas.user import UserSummary


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------


class CategoryBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    category_type: CategoryType = CategoryType.document


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    category_type: CategoryType | None = None


class CategoryRead(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


class CategorySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


# ---------------------------------------------------------------------------
# External contacts
# ---------------------------------------------------------------------------


class ExternalContactTypeBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class ExternalContactTypeCreate(ExternalContactTypeBase):
    pass


class ExternalContactTypeUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = None


class ExternalContactTypeRead(ExternalContactTypeBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


class ExternalContactBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=255)
    phone_number: str | None = None
    type_id: UUID
    document_id: UUID | None = None


class ExternalContactCreate(ExternalContactBase):
    pass


class ExternalContactUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    phone_number: str | None = None
    type_id: UUID | None = None
    document_id: UUID | None = None


class ExternalContactRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None = None
    phone_number: str | None = None
    type_id: UUID | None = None
    document_id: UUID | None = None
    contact_type: ExternalContactTypeRead | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentContactInput(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = None
    phone_number: str | None = None
    type_id: UUID | None = None


class DocumentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category_id: UUID | None = None
    stakeholders: list[UUID] = Field(default_factory=list)
    owners: list[UUID] = Field(default_factory=list)
    external_contacts: list[DocumentContactInput] = Field(default_factory=list)
    review_date: datetime | None = None
    opens_for_review: datetime | None = None
    review_interval: ReviewInterval | None = None
    review_interval_days: int | None = Field(default=None, ge=1)
    review_period: ReviewPeriod | None = None
    change_log: str | None = None


class DocumentUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    category_id: UUID | None = None
    stakeholders: list[UUID] | None = None
    owners: list[UUID] | None = None
    external_contacts: list[DocumentContactInput] | None = None
    review_date: datetime | None = None
    opens_for_review: datetime | None = None
    review_interval: ReviewInterval | None = None
    review_interval_days: int | None = Field(default=None, ge=1)
    review_period: ReviewPeriod | None = None
    change_log: str | None = None


class DocumentFileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    file_name: str
    original_name: str
    mime_type: str
    size: int
    version_number: int
    change_log: str | None = None
    uploaded_by_id: UUID | None = None
    uploaded_at: datetime


class VersionHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    version_number: int
    file_id: UUID | None = None
    file_name: str | None = None
    change_log: str | None = None
    changed_by_id: UUID | None = None
    created_at: datetime


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    author: UserSummary
    category: CategorySummary | None = None
    stakeholders: list[UserSummary] = Field(default_factory=list)
    owners: list[UserSummary] = Field(default_factory=list)
    external_contacts: list[ExternalContactRead] = Field(default_factory=list)
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    review_date: datetime | None = None
    opens_for_review: datetime | None = None
    review_interval: ReviewInterval | None = None
    review_interval_days: int | None = None
    review_period: ReviewPeriod | None = None
    last_reviewed_on: datetime | None = None
    next_review_due_on: datetime | None = None
    review_completed: bool = False
    review_completed_by: UserSummary | None = None
    review_completed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime
    updated_at: datetime


class DocumentDetail(DocumentRead):
    version_history: list[VersionHistoryRead] = Field(default_factory=list)


class ReviewToggleRequest(BaseModel):
    completed: bool
    notes: str | None = None


class DownloadURLResponse(BaseModel):
    download_url: str
    file_name: str
    version_number: int


class DocumentSearchResponse(BaseModel):
    documents: list[DocumentRead]
    total: int
    page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


class BookBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category_id: UUID


class BookCreate(BookBase):
    documents: list[UUID] = Field(default_factory=list)
    owners: list[UUID] = Field(default_factory=list)


class BookUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    category_id: UUID | None = None
    documents: list[UUID] | None = None
    owners: list[UUID] | None = None


class BookDocumentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str


class BookRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    category: CategorySummary
    documents: list[BookDocumentSummary] = Field(default_factory=list)
    owners: list[UserSummary] = Field(default_factory=list)
    document_count: int
    created_at: datetime
    updated_at: datetime


class BookDocumentRequest(BaseModel):
    document_id: UUID
