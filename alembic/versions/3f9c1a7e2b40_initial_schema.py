"""initial schema

Revision ID: 3f9c1a7e2b40
Revises:
Create Date: 2026-10-18 09:12:40.118204

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "3f9c1a7e2b40"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def _link_table(name: str, left: str, left_table: str, right: str, right_table: str) -> None:
    op.create_table(
        name,
        sa.Column(left, sa.UUID(), nullable=False),
        sa.Column(right, sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint([left], [f"{left_table}.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint([right], [f"{right_table}.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint(left, right),
    )


def upgrade() -> None:
    # Users + auth
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("firstname", sa.String(length=100), nullable=False),
        sa.Column("lastname", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("viewer", "editor", "admin", "superadmin", name="userrole"),
            nullable=False,
        ),
        sa.Column("telephone", sa.String(length=40), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=True),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("profile_picture", sa.String(length=500), nullable=True),
        sa.Column("background_image", sa.String(length=500), nullable=True),
        sa.Column("theme", sa.String(length=40), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("reset_password_token", sa.String(length=128), nullable=True),
        sa.Column("reset_password_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_updated_by_id", sa.UUID(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["last_updated_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("username"),
    )
    op.create_index(
        "ix_users_reset_password_token", "users", ["reset_password_token"], unique=False
    )

    op.create_table(
        "blacklisted_tokens",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("jti", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("jti"),
    )

    # Reference data
    op.create_table(
        "categories",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "category_type",
            sa.Enum("document", "book", name="categorytype"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "external_contact_types",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # Documents
    op.create_table(
        "documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("author_id", sa.UUID(), nullable=False),
        sa.Column("category_id", sa.UUID(), nullable=True),
        sa.Column("file_name", sa.String(length=500), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("mime_type", sa.String(length=255), nullable=True),
        sa.Column("storage_key", sa.String(length=1000), nullable=True),
        sa.Column("review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opens_for_review", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "review_interval",
            sa.Enum(
                "monthly",
                "quarterly",
                "semiannually",
                "annually",
                "custom",
                name="reviewinterval",
            ),
            nullable=True,
        ),
        sa.Column("review_interval_days", sa.Integer(), nullable=True),
        sa.Column(
            "review_period",
            sa.Enum(
                "one_week", "two_weeks", "three_weeks", "one_month", name="reviewperiod"
            ),
            nullable=True,
        ),
        sa.Column("last_reviewed_on", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_review_due_on", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_completed", sa.Boolean(), nullable=True),
        sa.Column("review_completed_by_id", sa.UUID(), nullable=True),
        sa.Column("review_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("last_updated_by_id", sa.UUID(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["review_completed_by_id"], ["users.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["last_updated_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_documents_author_id", "documents", ["author_id"], unique=False)
    op.create_index("ix_documents_category_id", "documents", ["category_id"], unique=False)
    op.create_index("ix_documents_created_at", "documents", ["created_at"], unique=False)

    _link_table("document_stakeholders", "document_id", "documents", "user_id", "users")
    _link_table("document_owners", "document_id", "documents", "user_id", "users")

    op.create_table(
        "external_contacts",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=40), nullable=True),
        sa.Column("type_id", sa.UUID(), nullable=True),
        sa.Column("document_id", sa.UUID(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["type_id"], ["external_contact_types.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_external_contacts_document_id",
        "external_contacts",
        ["document_id"],
        unique=False,
    )

    op.create_table(
        "document_files",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("file_name", sa.String(length=500), nullable=False),
        sa.Column("original_name", sa.String(length=500), nullable=False),
        sa.Column("storage_key", sa.String(length=1000), nullable=False),
        sa.Column("mime_type", sa.String(length=255), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("change_log", sa.Text(), nullable=True),
        sa.Column("uploaded_by_id", sa.UUID(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["uploaded_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id", "version_number", name="uq_document_files_version"
        ),
    )
    op.create_index(
        "ix_document_files_document_id", "document_files", ["document_id"], unique=False
    )

    op.create_table(
        "document_version_history",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("file_id", sa.UUID(), nullable=True),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.String(length=500), nullable=True),
        sa.Column("change_log", sa.Text(), nullable=True),
        sa.Column("changed_by_id", sa.UUID(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["file_id"], ["document_files.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["changed_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_document_version_history_document_id",
        "document_version_history",
        ["document_id"],
        unique=False,
    )

    # Reviews
    op.create_table(
        "review_assignments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("assignee_id", sa.UUID(), nullable=False),
        sa.Column("assigned_by_id", sa.UUID(), nullable=False),
        sa.Column("assigned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "in_progress", "completed", "overdue", name="reviewstatus"),
            nullable=False,
        ),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("requires_updates", sa.Boolean(), nullable=True),
        sa.Column("update_notes", sa.Text(), nullable=True),
        sa.Column("update_assignment_id", sa.UUID(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assignee_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(
            ["update_assignment_id"], ["review_assignments.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_review_assignments_document_assignee",
        "review_assignments",
        ["document_id", "assignee_id"],
        unique=False,
    )
    op.create_index(
        "ix_review_assignments_due_date", "review_assignments", ["due_date"], unique=False
    )
    op.create_index(
        "ix_review_assignments_status", "review_assignments", ["status"], unique=False
    )

    # Books
    op.create_table(
        "books",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_id", sa.UUID(), nullable=False),
        sa.Column("last_updated_by_id", sa.UUID(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["last_updated_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_books_category_id", "books", ["category_id"], unique=False)
    _link_table("book_documents", "book_id", "books", "document_id", "documents")
    _link_table("book_owners", "book_id", "books", "user_id", "users")

    # Teams
    op.create_table(
        "teams",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("owner_id", sa.UUID(), nullable=False),
        sa.Column("is_private", sa.Boolean(), nullable=True),
        sa.Column("allow_member_invites", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_teams_owner_id", "teams", ["owner_id"], unique=False)

    op.create_table(
        "team_members",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("team_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("role", sa.Enum("member", "admin", name="teamrole"), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
    )
    op.create_index("ix_team_members_user_id", "team_members", ["user_id"], unique=False)

    op.create_table(
        "team_invitations",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("team_id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            postgresql.ENUM("member", "admin", name="teamrole", create_type=False),
            nullable=False,
        ),
        sa.Column("invited_by_id", sa.UUID(), nullable=False),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "accepted", "declined", "expired", name="invitationstatus"),
            nullable=False,
        ),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["invited_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token"),
    )
    _link_table("team_documents", "team_id", "teams", "document_id", "documents")
    _link_table("team_books", "team_id", "teams", "book_id", "books")

    # Projects
    op.create_table(
        "projects",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("team_id", sa.UUID(), nullable=False),
        sa.Column("owner_id", sa.UUID(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "completed", "archived", "on_hold", name="projectstatus"),
            nullable=False,
        ),
        sa.Column(
            "priority",
            sa.Enum("low", "medium", "high", "critical", name="projectpriority"),
            nullable=False,
        ),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=True),
        sa.Column("allow_document_upload", sa.Boolean(), nullable=True),
        sa.Column("require_approval", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_team_id", "projects", ["team_id"], unique=False)
    op.create_index("ix_projects_owner_id", "projects", ["owner_id"], unique=False)
    op.create_index("ix_projects_status", "projects", ["status"], unique=False)
    op.create_index("ix_projects_priority", "projects", ["priority"], unique=False)

    op.create_table(
        "project_collaborators",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column(
            "role",
            sa.Enum("viewer", "contributor", "manager", name="collaboratorrole"),
            nullable=False,
        ),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "project_id", "user_id", name="uq_project_collaborators_project_user"
        ),
    )
    op.create_index(
        "ix_project_collaborators_user_id",
        "project_collaborators",
        ["user_id"],
        unique=False,
    )
    _link_table("project_documents", "project_id", "projects", "document_id", "documents")
    _link_table("project_books", "project_id", "projects", "book_id", "books")

    # Notifications + charts
    op.create_table(
        "notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("recipient_id", sa.UUID(), nullable=False),
        sa.Column("sender_id", sa.UUID(), nullable=True),
        sa.Column(
            "type",
            sa.Enum(
                "team_invitation",
                "team_invitation_accepted",
                "team_invitation_declined",
                "document_assigned",
                "document_review_due",
                "document_review_completed",
                "document_updated",
                "message",
                name="notificationtype",
            ),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("related_document_id", sa.UUID(), nullable=True),
        sa.Column("related_team_id", sa.UUID(), nullable=True),
        sa.Column("invitation_token", sa.String(length=64), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["related_document_id"], ["documents.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["related_team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notifications_recipient_read",
        "notifications",
        ["recipient_id", "is_read", "created_at"],
        unique=False,
    )

    op.create_table(
        "custom_charts",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "chart_type",
            sa.Enum(
                "bar", "line", "pie", "doughnut", "radar", "polar_area", name="charttype"
            ),
            nullable=False,
        ),
        sa.Column(
            "data_source",
            sa.Enum(
                "documents",
                "users",
                "categories",
                "teams",
                "projects",
                name="chartdatasource",
            ),
            nullable=False,
        ),
        sa.Column("x_axis_field", sa.String(length=100), nullable=True),
        sa.Column("y_axis_field", sa.String(length=100), nullable=True),
        sa.Column("group_by_field", sa.String(length=100), nullable=True),
        sa.Column("filters", sa.JSON(), nullable=True),
        sa.Column("color_palette", sa.JSON(), nullable=True),
        sa.Column("created_by_id", sa.UUID(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("custom_charts")
    op.drop_index("ix_notifications_recipient_read", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("project_books")
    op.drop_table("project_documents")
    op.drop_index("ix_project_collaborators_user_id", table_name="project_collaborators")
    op.drop_table("project_collaborators")
    for index_name in [
        "ix_projects_priority",
        "ix_projects_status",
        "ix_projects_owner_id",
        "ix_projects_team_id",
    ]:
        op.drop_index(index_name, table_name="projects")
    op.drop_table("projects")
    op.drop_table("team_books")
    op.drop_table("team_documents")
    op.drop_table("team_invitations")
    op.drop_index("ix_team_members_user_id", table_name="team_members")
    op.drop_table("team_members")
    op.drop_index("ix_teams_owner_id", table_name="teams")
    op.drop_table("teams")
    op.drop_table("book_owners")
    op.drop_table("book_documents")
    op.drop_index("ix_books_category_id", table_name="books")
    op.drop_table("books")
    for index_name in [
        "ix_review_assignments_status",
        "ix_review_assignments_due_date",
        "ix_review_assignments_document_assignee",
    ]:
        op.drop_index(index_name, table_name="review_assignments")
    op.drop_table("review_assignments")
    op.drop_index(
        "ix_document_version_history_document_id", table_name="document_version_history"
    )
    op.drop_table("document_version_history")
    op.drop_index("ix_document_files_document_id", table_name="document_files")
    op.drop_table("document_files")
    op.drop_index("ix_external_contacts_document_id", table_name="external_contacts")
    op.drop_table("external_contacts")
    op.drop_table("document_owners")
    op.drop_table("document_stakeholders")
    for index_name in [
        "ix_documents_created_at",
        "ix_documents_category_id",
        "ix_documents_author_id",
    ]:
        op.drop_index(index_name, table_name="documents")
    op.drop_table("documents")
    op.drop_table("external_contact_types")
    op.drop_table("categories")
    op.drop_table("blacklisted_tokens")
    op.drop_index("ix_users_reset_password_token", table_name="users")
    op.drop_table("users")

    for enum_name in [
        "chartdatasource",
        "charttype",
        "notificationtype",
        "collaboratorrole",
        "projectpriority",
        "projectstatus",
        "invitationstatus",
        "teamrole",
        "reviewstatus",
        "reviewperiod",
        "reviewinterval",
        "categorytype",
        "userrole",
    ]:
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
