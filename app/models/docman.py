import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Table,
    Text,
    UniqueConstraint,
    event,
    func,
    select,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.db import Base
from app.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CategoryType(enum.Enum):
    document = "Document"
    book = "Book"


class ReviewInterval(enum.Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    semiannually = "semiannually"
    annually = "annually"
    custom = "custom"


class ReviewPeriod(enum.Enum):
    one_week = "1week"
    two_weeks = "2weeks"
    three_weeks = "3weeks"
    one_month = "1month"


class ReviewStatus(enum.Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"
    overdue = "overdue"


class TeamRole(enum.Enum):
    member = "member"
    admin = "admin"


class InvitationStatus(enum.Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"


class ProjectStatus(enum.Enum):
    active = "active"
    completed = "completed"
    archived = "archived"
    on_hold = "on-hold"


class ProjectPriority(enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class CollaboratorRole(enum.Enum):
    viewer = "viewer"
    contributor = "contributor"
    manager = "manager"


class NotificationType(enum.Enum):
    team_invitation = "team_invitation"
    team_invitation_accepted = "team_invitation_accepted"
    team_invitation_declined = "team_invitation_declined"
    document_assigned = "document_assigned"
    document_review_due = "document_review_due"
    document_review_completed = "document_review_completed"
    document_updated = "document_updated"
    message = "message"


class ChartType(enum.Enum):
    bar = "bar"
    line = "line"
    pie = "pie"
    doughnut = "doughnut"
    radar = "radar"
    polar_area = "polarArea"


class ChartDataSource(enum.Enum):
    documents = "documents"
    users = "users"
    categories = "categories"
    teams = "teams"
    projects = "projects"


# ---------------------------------------------------------------------------
# Association tables
# ---------------------------------------------------------------------------


def _link_table(name: str, left: str, left_fk: str, right: str, right_fk: str):
    return Table(
        name,
        Base.metadata,
        Column(
            left,
            UUID(as_uuid=True),
            ForeignKey(left_fk, ondelete="CASCADE"),
            primary_key=True,
        ),
        Column(
            right,
            UUID(as_uuid=True),
            ForeignKey(right_fk, ondelete="CASCADE"),
            primary_key=True,
        ),
    )


document_stakeholders = _link_table(
    "document_stakeholders", "document_id", "documents.id", "user_id", "users.id"
)
document_owners = _link_table(
    "document_owners", "document_id", "documents.id", "user_id", "users.id"
)
book_documents = _link_table(
    "book_documents", "book_id", "books.id", "document_id", "documents.id"
)
book_owners = _link_table("book_owners", "book_id", "books.id", "user_id", "users.id")
team_documents = _link_table(
    "team_documents", "team_id", "teams.id", "document_id", "documents.id"
)
team_books = _link_table("team_books", "team_id", "teams.id", "book_id", "books.id")
project_documents = _link_table(
    "project_documents", "project_id", "projects.id", "document_id", "documents.id"
)
project_books = _link_table(
    "project_books", "project_id", "projects.id", "book_id", "books.id"
)


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category_type: Mapped[CategoryType] = mapped_column(
        Enum(CategoryType), default=CategoryType.document, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class ExternalContactType(Base):
    __tablename__ = "external_contact_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class ExternalContact(Base):
    __tablename__ = "external_contacts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone_number: Mapped[str | None] = mapped_column(String(40))
    type_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("external_contact_types.id", ondelete="SET NULL"),
    )
    document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    contact_type: Mapped[ExternalContactType | None] = relationship()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_author_id", "author_id"),
        Index("ix_documents_category_id", "category_id"),
        Index("ix_documents_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("categories.id", ondelete="SET NULL")
    )

    # Current file, mirrored from the latest DocumentFile
    file_name: Mapped[str | None] = mapped_column(String(500))
    file_size: Mapped[int | None] = mapped_column(BigInteger)
    mime_type: Mapped[str | None] = mapped_column(String(255))
    storage_key: Mapped[str | None] = mapped_column(String(1000))

    # Review scheduling; opens_for_review supersedes the legacy review_date
    review_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    opens_for_review: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    review_interval: Mapped[ReviewInterval | None] = mapped_column(
        Enum(ReviewInterval)
    )
    review_interval_days: Mapped[int | None] = mapped_column(Integer)
    review_period: Mapped[ReviewPeriod | None] = mapped_column(Enum(ReviewPeriod))
    last_reviewed_on: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    next_review_due_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    review_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    review_completed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    review_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    review_notes: Mapped[str | None] = mapped_column(Text)

    last_updated_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    author: Mapped[User] = relationship(foreign_keys=[author_id])
    category: Mapped[Category | None] = relationship()
    review_completed_by: Mapped[User | None] = relationship(
        foreign_keys=[review_completed_by_id]
    )
    stakeholders: Mapped[list[User]] = relationship(secondary=document_stakeholders)
    owners: Mapped[list[User]] = relationship(secondary=document_owners)
    files: Mapped[list["DocumentFile"]] = relationship(
        back_populates="document",
        foreign_keys="DocumentFile.document_id",
        order_by="DocumentFile.version_number",
        cascade="all, delete-orphan",
    )
    version_history: Mapped[list["DocumentVersionHistory"]] = relationship(
        back_populates="document",
        order_by="DocumentVersionHistory.version_number",
        cascade="all, delete-orphan",
    )
    external_contacts: Mapped[list[ExternalContact]] = relationship(
        cascade="all, delete-orphan"
    )
    review_assignments: Mapped[list["ReviewAssignment"]] = relationship(
        back_populates="document", cascade="all, delete-orphan"
    )

    @validates("review_completed")
    def _clear_review_completion(self, key, value):
        if not value:
            self.review_completed_by_id = None
            self.review_completed_at = None
        return bool(value)


class DocumentFile(Base):
    __tablename__ = "document_files"
    __table_args__ = (
        UniqueConstraint(
            "document_id", "version_number", name="uq_document_files_version"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1000), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    change_log: Mapped[str | None] = mapped_column(Text)
    uploaded_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    document: Mapped[Document] = relationship(
        back_populates="files", foreign_keys=[document_id]
    )


@event.listens_for(DocumentFile, "before_insert")
def _assign_file_version(mapper, connection, target: DocumentFile) -> None:
    latest = connection.execute(
        select(func.max(DocumentFile.version_number)).where(
            DocumentFile.document_id == target.document_id
        )
    ).scalar()
    target.version_number = (latest or 0) + 1


class DocumentVersionHistory(Base):
    __tablename__ = "document_version_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("document_files.id", ondelete="SET NULL")
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(500))
    change_log: Mapped[str | None] = mapped_column(Text)
    changed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    document: Mapped[Document] = relationship(back_populates="version_history")


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class ReviewAssignment(Base):
    __tablename__ = "review_assignments"
    __table_args__ = (
        Index("ix_review_assignments_document_assignee", "document_id", "assignee_id"),
        Index("ix_review_assignments_due_date", "due_date"),
        Index("ix_review_assignments_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    assignee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    assigned_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    assigned_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[ReviewStatus] = mapped_column(
        Enum(ReviewStatus), default=ReviewStatus.pending, nullable=False
    )
    completed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)
    requires_updates: Mapped[bool] = mapped_column(Boolean, default=False)
    update_notes: Mapped[str | None] = mapped_column(Text)
    update_assignment_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("review_assignments.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    document: Mapped[Document] = relationship(back_populates="review_assignments")
    assignee: Mapped[User] = relationship(foreign_keys=[assignee_id])
    assigned_by: Mapped[User] = relationship(foreign_keys=[assigned_by_id])


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


class Book(Base):
    __tablename__ = "books"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("categories.id"), nullable=False, index=True
    )
    last_updated_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    category: Mapped[Category] = relationship()
    documents: Mapped[list[Document]] = relationship(secondary=book_documents)
    owners: Mapped[list[User]] = relationship(secondary=book_owners)

    @property
    def document_count(self) -> int:
        return len(self.documents)


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


class Team(Base):
    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    is_private: Mapped[bool] = mapped_column(Boolean, default=False)
    allow_member_invites: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    owner: Mapped[User] = relationship()
    members: Mapped[list["TeamMember"]] = relationship(
        back_populates="team", cascade="all, delete-orphan"
    )
    invitations: Mapped[list["TeamInvitation"]] = relationship(
        back_populates="team", cascade="all, delete-orphan"
    )
    documents: Mapped[list[Document]] = relationship(secondary=team_documents)
    books: Mapped[list[Book]] = relationship(secondary=team_books)

    @property
    def member_count(self) -> int:
        return len(self.members)


class TeamMember(Base):
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[TeamRole] = mapped_column(
        Enum(TeamRole), default=TeamRole.member, nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    team: Mapped[Team] = relationship(back_populates="members")
    user: Mapped[User] = relationship()


class TeamInvitation(Base):
    __tablename__ = "team_invitations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[TeamRole] = mapped_column(
        Enum(TeamRole), default=TeamRole.member, nullable=False
    )
    invited_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    invited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    status: Mapped[InvitationStatus] = mapped_column(
        Enum(InvitationStatus), default=InvitationStatus.pending, nullable=False
    )
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    team: Mapped[Team] = relationship(back_populates="invitations")


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        Index("ix_projects_status", "status"),
        Index("ix_projects_priority", "priority"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000))
    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus), default=ProjectStatus.active, nullable=False
    )
    priority: Mapped[ProjectPriority] = mapped_column(
        Enum(ProjectPriority), default=ProjectPriority.medium, nullable=False
    )
    start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    tags: Mapped[list | None] = mapped_column(JSON, default=list)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False)
    allow_document_upload: Mapped[bool] = mapped_column(Boolean, default=True)
    require_approval: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    team: Mapped[Team] = relationship()
    owner: Mapped[User] = relationship()
    collaborators: Mapped[list["ProjectCollaborator"]] = relationship(
        back_populates="project", cascade="all, delete-orphan"
    )
    documents: Mapped[list[Document]] = relationship(secondary=project_documents)
    books: Mapped[list[Book]] = relationship(secondary=project_books)

    @property
    def document_count(self) -> int:
        return len(self.documents)

    @property
    def collaborator_count(self) -> int:
        return len(self.collaborators)

    @property
    def progress(self) -> int:
        """Share of documents whose next review is still in the future."""
        if not self.documents:
            return 0
        now = _utcnow()
        upcoming = 0
        for document in self.documents:
            due = document.opens_for_review or document.review_date
            if due is not None and as_utc(due) > now:
                upcoming += 1
        return int(upcoming * 100 / len(self.documents) + 0.5)


class ProjectCollaborator(Base):
    __tablename__ = "project_collaborators"
    __table_args__ = (
        UniqueConstraint(
            "project_id", "user_id", name="uq_project_collaborators_project_user"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[CollaboratorRole] = mapped_column(
        Enum(CollaboratorRole), default=CollaboratorRole.contributor, nullable=False
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    project: Mapped[Project] = relationship(back_populates="collaborators")
    user: Mapped[User] = relationship()


# ---------------------------------------------------------------------------
# Notifications and charts
# ---------------------------------------------------------------------------


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "is_read", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE")
    )
    related_team_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE")
    )
    invitation_token: Mapped[str | None] = mapped_column(String(64))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class CustomChart(Base):
    __tablename__ = "custom_charts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    chart_type: Mapped[ChartType] = mapped_column(Enum(ChartType), nullable=False)
    data_source: Mapped[ChartDataSource] = mapped_column(
        Enum(ChartDataSource), nullable=False
    )
    x_axis_field: Mapped[str] = mapped_column(String(100), default="")
    y_axis_field: Mapped[str] = mapped_column(String(100), default="")
    group_by_field: Mapped[str] = mapped_column(String(100), default="")
    filters: Mapped[dict | None] = mapped_column(JSON, default=dict)
    color_palette: Mapped[list | None] = mapped_column(JSON, default=list)
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
