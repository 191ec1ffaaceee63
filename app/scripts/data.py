"""Seed demo data or clear collections.

    python -m app.scripts.data seed
    python -m app.scripts.data clear documents notifications
"""

import argparse
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.logging import configure_logging
from app.models.docman import (
    Book,
    Category,
    CategoryType,
    ChartDataSource,
    ChartType,
    CollaboratorRole,
    CustomChart,
    Document,
    DocumentFile,
    DocumentVersionHistory,
    ExternalContact,
    ExternalContactType,
    Notification,
    NotificationType,
    Project,
    ProjectCollaborator,
    ReviewAssignment,
    ReviewInterval,
    ReviewStatus,
    Team,
    TeamInvitation,
    TeamMember,
    TeamRole,
    book_documents,
    book_owners,
    document_owners,
    document_stakeholders,
    project_books,
    project_documents,
    team_books,
    team_documents,
)
from app.models.user import BlacklistedToken, User, UserRole
from app.services.auth import hash_password

logger = logging.getLogger("app.scripts.data")

DEMO_PASSWORD = "DocMan!2024"

DEMO_USERS = [
    ("Ada", "Admin", "admin@docman.local", "admin", UserRole.superadmin),
    ("Eddie", "Editor", "editor@docman.local", "editor", UserRole.editor),
    ("Vera", "Viewer", "viewer@docman.local", "viewer", UserRole.viewer),
]

DEMO_CATEGORIES = [
    ("Technical Documentation", "Technical specifications and implementation notes", CategoryType.document),
    ("User Guides", "End-user documentation and tutorials", CategoryType.document),
    ("Policies & Procedures", "Company policies and standard operating procedures", CategoryType.document),
    ("Development Handbooks", "Collections of development-related documentation", CategoryType.book),
    ("Training Materials", "Onboarding and training collections", CategoryType.book),
]

DEMO_CONTACT_TYPES = [
    ("Vendor", "External supplier contact"),
    ("Auditor", "External compliance auditor"),
    ("Consultant", "Contracted subject matter expert"),
]

# Children before parents so foreign keys never dangle.
COLLECTIONS: dict[str, list] = {
    "blacklisted_tokens": [BlacklistedToken],
    "notifications": [Notification],
    "custom_charts": [CustomChart],
    "review_assignments": [ReviewAssignment],
    "projects": [project_documents, project_books, ProjectCollaborator, Project],
    "teams": [team_documents, team_books, TeamInvitation, TeamMember, Team],
    "books": [book_documents, book_owners, Book],
    "files": [DocumentVersionHistory, DocumentFile],
    "external_contacts": [ExternalContact],
    "documents": [
        document_stakeholders,
        document_owners,
        ExternalContact,
        DocumentVersionHistory,
        DocumentFile,
        Document,
    ],
    "external_contact_types": [ExternalContactType],
    "categories": [Category],
    "users": [User],
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _get_or_create(db: Session, model, lookup: dict, **values):
    instance = db.scalar(select(model).filter_by(**lookup))
    if instance is not None:
        return instance, False
    instance = model(**lookup, **values)
    db.add(instance)
    db.flush()
    return instance, True


def seed(db: Session) -> dict[str, int]:
    created: dict[str, int] = {}

    def _count(name: str, was_created: bool) -> None:
        if was_created:
            created[name] = created.get(name, 0) + 1

    users = []
    for firstname, lastname, email, username, role in DEMO_USERS:
        user, was_created = _get_or_create(
            db,
            User,
            {"email": email},
            firstname=firstname,
            lastname=lastname,
            username=username,
            password_hash=hash_password(DEMO_PASSWORD),
            role=role,
        )
        users.append(user)
        _count("users", was_created)
    admin, editor, viewer = users

    categories = {}
    for name, description, category_type in DEMO_CATEGORIES:
        category, was_created = _get_or_create(
            db,
            Category,
            {"name": name},
            description=description,
            category_type=category_type,
        )
        categories[name] = category
        _count("categories", was_created)

    contact_types = []
    for name, description in DEMO_CONTACT_TYPES:
        contact_type, was_created = _get_or_create(
            db, ExternalContactType, {"name": name}, description=description
        )
        contact_types.append(contact_type)
        _count("external_contact_types", was_created)

    documents = []
    for index, (title, category_name) in enumerate(
        [
            ("Deployment Runbook", "Technical Documentation"),
            ("Getting Started", "User Guides"),
            ("Information Security Policy", "Policies & Procedures"),
        ]
    ):
        document, was_created = _get_or_create(
            db,
            Document,
            {"title": title},
            description=f"Demo document: {title}",
            author_id=editor.id,
            category_id=categories[category_name].id,
            review_interval=ReviewInterval.quarterly,
            opens_for_review=_now() + timedelta(days=7 * (index + 1)),
        )
        if was_created:
            document.stakeholders = [viewer]
            document.owners = [editor]
            document.external_contacts = [
                ExternalContact(
                    name=f"{contact_types[index].name} Contact",
                    email=f"contact{index + 1}@example.com",
                    type_id=contact_types[index].id,
                )
            ]
        documents.append(document)
        _count("documents", was_created)

    book, was_created = _get_or_create(
        db,
        Book,
        {"title": "Engineering Handbook"},
        description="Runbooks and guides for the engineering team",
        category_id=categories["Development Handbooks"].id,
    )
    if was_created:
        book.documents = documents[:2]
        book.owners = [editor]
    _count("books", was_created)

    team, was_created = _get_or_create(
        db,
        Team,
        {"name": "Platform"},
        description="Platform engineering",
        owner_id=editor.id,
    )
    if was_created:
        team.members = [
            TeamMember(user_id=editor.id, role=TeamRole.admin),
            TeamMember(user_id=viewer.id, role=TeamRole.member),
        ]
        team.documents = documents[:1]
        team.books = [book]
    _count("teams", was_created)

    project, was_created = _get_or_create(
        db,
        Project,
        {"name": "Docs Refresh"},
        description="Bring the platform documentation up to date",
        team_id=team.id,
        owner_id=editor.id,
        tags=["docs", "q3"],
    )
    if was_created:
        project.collaborators = [
            ProjectCollaborator(user_id=editor.id, role=CollaboratorRole.manager),
            ProjectCollaborator(user_id=viewer.id, role=CollaboratorRole.viewer),
        ]
        project.documents = documents[:2]
    _count("projects", was_created)

    if not db.scalar(select(ReviewAssignment.id).limit(1)):
        db.add(
            ReviewAssignment(
                document_id=documents[0].id,
                assignee_id=viewer.id,
                assigned_by_id=admin.id,
                due_date=_now() + timedelta(days=14),
                status=ReviewStatus.pending,
            )
        )
        db.add(
            Notification(
                recipient_id=viewer.id,
                sender_id=admin.id,
                type=NotificationType.document_assigned,
                title=f"Review assigned: {documents[0].title}",
                message=f"{admin.full_name} assigned you to review '{documents[0].title}'.",
                related_document_id=documents[0].id,
            )
        )
        _count("review_assignments", True)
        _count("notifications", True)

    _, was_created = _get_or_create(
        db,
        CustomChart,
        {"name": "Documents by category"},
        description="Document count per category",
        chart_type=ChartType.bar,
        data_source=ChartDataSource.documents,
        x_axis_field="category",
        group_by_field="category",
        created_by_id=admin.id,
        is_public=True,
    )
    _count("custom_charts", was_created)

    db.commit()
    return created


def clear(db: Session, names: list[str]) -> dict[str, int]:
    removed: dict[str, int] = {}
    for name in names:
        total = 0
        for target in COLLECTIONS[name]:
            table = getattr(target, "__table__", target)
            total += db.execute(delete(table)).rowcount or 0
        removed[name] = total
    db.commit()
    return removed


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="DocMan data maintenance")
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("seed", help="Create demo users, documents and collaboration data")
    clear_parser = sub.add_parser("clear", help="Delete every row of the named collections")
    clear_parser.add_argument(
        "collections", nargs="*", help="Collections to clear (default: all)"
    )
    args = parser.parse_args(argv)
    unknown = sorted(set(getattr(args, "collections", [])) - set(COLLECTIONS))
    if unknown:
        parser.error(
            f"unknown collections: {', '.join(unknown)} "
            f"(choose from {', '.join(COLLECTIONS)})"
        )

    configure_logging()
    db = SessionLocal()
    try:
        if args.cmd == "seed":
            created = seed(db)
            logger.info("Seeded demo data: %s", created or "nothing new")
        else:
            names = [name for name in COLLECTIONS if name in args.collections]
            removed = clear(db, names or list(COLLECTIONS))
            logger.info("Cleared collections: %s", removed)
    except Exception:
        db.rollback()
        logger.exception("Data command %s failed", args.cmd)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
