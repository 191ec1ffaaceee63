from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.docman import (
    CollaboratorRole,
    InvitationStatus,
    ProjectPriority,
    ProjectStatus,
    TeamRole,
)
from app.schemas.docman import BookDocumentSummary
from app.schemas.user import UserSummary


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


class TeamBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_private: bool = False
    allow_member_invites: bool = False


class TeamCreate(TeamBase):
    pass


class TeamUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_private: bool | None = None
    allow_member_invites: bool | None = None


class TeamMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user: UserSummary
    role: TeamRole
    joined_at: datetime


class TeamInvitationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    role: TeamRole
    status: InvitationStatus
    invited_at: datetime
    expires_at: datetime


class BookSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str


class TeamRead(TeamBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner: UserSummary
    members: list[TeamMemberRead] = Field(default_factory=list)
    member_count: int
    documents: list[BookDocumentSummary] = Field(default_factory=list)
    books: list[BookSummary] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class TeamInviteRequest(BaseModel):
    email: str
    role: TeamRole = TeamRole.member


class MemberRoleUpdate(BaseModel):
    role: TeamRole


class AttachRequest(BaseModel):
    document_id: UUID | None = None
    book_id: UUID | None = None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    status: ProjectStatus = ProjectStatus.active
    priority: ProjectPriority = ProjectPriority.medium
    start_date: datetime | None = None
    end_date: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    is_private: bool = False
    allow_document_upload: bool = True
    require_approval: bool = False


class ProjectCreate(ProjectBase):
    team_id: UUID


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    tags: list[str] | None = None
    is_private: bool | None = None
    allow_document_upload: bool | None = None
    require_approval: bool | None = None


class ProjectCollaboratorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user: UserSummary
    role: CollaboratorRole
    added_at: datetime


class ProjectRead(ProjectBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    team_id: UUID
    owner: UserSummary
    collaborators: list[ProjectCollaboratorRead] = Field(default_factory=list)
    documents: list[BookDocumentSummary] = Field(default_factory=list)
    books: list[BookSummary] = Field(default_factory=list)
    document_count: int
    collaborator_count: int
    progress: int = 0
    created_at: datetime
    updated_at: datetime


class CollaboratorRequest(BaseModel):
    user_id: UUID
    role: CollaboratorRole = CollaboratorRole.contributor


class ProjectBookRequest(BaseModel):
    book_id: UUID
