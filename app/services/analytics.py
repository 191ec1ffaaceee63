"""Aggregations behind the dashboard, analytics page and document search.

Dashboard and analytics payloads are memoised in the shared ``TTLCache``.
Each payload is assembled from several independent queries; if any of them
fails the error propagates and nothing is cached.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.models.docman import Category, Document
from app.models.user import User
from app.services.access import document_visibility_clause
from app.services.cache import TTLCache, cache
from app.services.document_query import (
    build_document_filter,
    build_document_query,
    build_document_sort,
    review_due_column,
)

logger = logging.getLogger(__name__)

DASHBOARD_KEY_PREFIX = "dashboard:"
ANALYTICS_KEY = "analytics:main"
RECENT_DOCUMENTS_LIMIT = 5
UPCOMING_REVIEWS_LIMIT = 10
TOP_AUTHORS_LIMIT = 10
ANALYTICS_DUE_SOON_DAYS = 30
RECENT_WINDOW_DAYS = 30


def invalidate_document_caches(target: TTLCache = cache) -> None:
    target.clear(pattern=DASHBOARD_KEY_PREFIX)
    target.clear(keys=[ANALYTICS_KEY])


def paginate(total: int, limit: int, skip: int) -> dict[str, Any]:
    limit = max(limit, 1)
    return {
        "page": skip // limit + 1,
        "total_pages": math.ceil(total / limit),
        "has_next_page": skip + limit < total,
        "has_prev_page": skip > 0,
    }


def _summary(document: Document) -> dict[str, Any]:
    author = document.author
    due = document.opens_for_review or document.review_date
    return {
        "id": str(document.id),
        "title": document.title,
        "author": author.full_name if author else None,
        "category": document.category.name if document.category else None,
        "review_due": due.isoformat() if due else None,
        "review_completed": bool(document.review_completed),
        "created_at": document.created_at.isoformat() if document.created_at else None,
        "updated_at": document.updated_at.isoformat() if document.updated_at else None,
    }


def _visible(stmt, user: User):
    clause = document_visibility_clause(user)
    return stmt if clause is None else stmt.where(clause)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def document_search_conditions(filters: Mapping[str, Any], user: User) -> list:
    conditions = [
        build_document_filter(build_document_query(filters)),
        document_visibility_clause(user),
    ]
    return [c for c in conditions if c is not None]


def optimized_document_search(
    db: Session,
    filters: Mapping[str, Any],
    options: Mapping[str, Any],
    user: User,
) -> dict[str, Any]:
    limit = min(max(int(options.get("limit") or 20), 1), 100)
    skip = max(int(options.get("skip") or 0), 0)
    conditions = document_search_conditions(filters, user)

    count_stmt = select(func.count(Document.id))
    stmt = select(Document).options(
        selectinload(Document.author), selectinload(Document.category)
    )
    if conditions:
        count_stmt = count_stmt.where(*conditions)
        stmt = stmt.where(*conditions)
    total = db.scalar(count_stmt) or 0
    stmt = (
        stmt.order_by(
            build_document_sort(options.get("sort_by"), options.get("sort_order")),
            Document.id,
        )
        .limit(limit)
        .offset(skip)
    )
    documents = db.scalars(stmt).all()
    return {"documents": documents, "total": total, **paginate(total, limit, skip)}


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def _dashboard_stats(db: Session, user: User, now: datetime) -> dict[str, int]:
    due = review_due_column()
    total = db.scalar(_visible(select(func.count(Document.id)), user)) or 0
    authored = (
        db.scalar(
            select(func.count(Document.id)).where(Document.author_id == user.id)
        )
        or 0
    )
    overdue = (
        db.scalar(
            _visible(
                select(func.count(Document.id)).where(
                    due.is_not(None),
                    due < now,
                    Document.review_completed.is_not(True),
                ),
                user,
            )
        )
        or 0
    )
    return {
        "total_documents": total,
        "authored_documents": authored,
        "overdue_reviews": overdue,
    }


def _recent_documents(db: Session, user: User) -> list[dict[str, Any]]:
    stmt = _visible(
        select(Document)
        .options(selectinload(Document.author), selectinload(Document.category))
        .order_by(Document.updated_at.desc())
        .limit(RECENT_DOCUMENTS_LIMIT),
        user,
    )
    return [_summary(d) for d in db.scalars(stmt).all()]


def _upcoming_reviews(db: Session, user: User, now: datetime) -> list[dict[str, Any]]:
    due = review_due_column()
    stmt = _visible(
        select(Document)
        .options(selectinload(Document.author), selectinload(Document.category))
        .where(due.is_not(None), due >= now, Document.review_completed.is_not(True))
        .order_by(due.asc())
        .limit(UPCOMING_REVIEWS_LIMIT),
        user,
    )
    return [_summary(d) for d in db.scalars(stmt).all()]


def get_user_dashboard_data(
    db: Session, user: User, target: TTLCache = cache
) -> dict[str, Any]:
    def compute() -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        logger.debug("Computing dashboard for user %s", user.id)
        return {
            "stats": _dashboard_stats(db, user, now),
            "recent_documents": _recent_documents(db, user),
            "upcoming_reviews": _upcoming_reviews(db, user, now),
        }

    return target.get_or_set(
        f"{DASHBOARD_KEY_PREFIX}{user.id}",
        compute,
        ttl=settings.dashboard_cache_ttl_seconds,
    )


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


def _documents_by_category(db: Session) -> list[dict[str, Any]]:
    rows = db.execute(
        select(
            func.coalesce(Category.name, "Uncategorized").label("name"),
            func.count(Document.id).label("count"),
        )
        .select_from(Document)
        .outerjoin(Category, Category.id == Document.category_id)
        .group_by(Category.name)
        .order_by(func.count(Document.id).desc())
    ).all()
    return [{"name": name, "count": count} for name, count in rows]


def _documents_by_author(db: Session) -> list[dict[str, Any]]:
    rows = db.execute(
        select(
            User.id,
            User.firstname,
            User.lastname,
            func.count(Document.id).label("count"),
        )
        .join(Document, Document.author_id == User.id)
        .group_by(User.id, User.firstname, User.lastname)
        .order_by(func.count(Document.id).desc())
        .limit(TOP_AUTHORS_LIMIT)
    ).all()
    return [
        {"author_id": str(uid), "name": f"{first} {last}".strip(), "count": count}
        for uid, first, last, count in rows
    ]


def _review_status(db: Session, now: datetime) -> list[dict[str, Any]]:
    due = review_due_column()
    soon = now + timedelta(days=ANALYTICS_DUE_SOON_DAYS)
    bucket = case(
        (and_(due.is_not(None), due < now), "Overdue"),
        (and_(due.is_not(None), due <= soon), "Due Soon"),
        else_="Current",
    )
    rows = db.execute(
        select(bucket.label("status"), func.count(Document.id)).group_by(bucket)
    ).all()
    counts = {status: count for status, count in rows}
    return [
        {"status": status, "count": counts.get(status, 0)}
        for status in ("Overdue", "Due Soon", "Current")
    ]


def _totals(db: Session) -> dict[str, int]:
    return {
        "total_documents": db.scalar(select(func.count(Document.id))) or 0,
        "total_users": db.scalar(select(func.count(User.id))) or 0,
        "total_categories": db.scalar(select(func.count(Category.id))) or 0,
    }


def _recently_created(db: Session, now: datetime) -> int:
    since = now - timedelta(days=RECENT_WINDOW_DAYS)
    return (
        db.scalar(select(func.count(Document.id)).where(Document.created_at >= since))
        or 0
    )


def get_optimized_analytics(db: Session, target: TTLCache = cache) -> dict[str, Any]:
    def compute() -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        logger.debug("Computing document analytics")
        return {
            "documents_by_category": _documents_by_category(db),
            "documents_by_author": _documents_by_author(db),
            "review_status": _review_status(db, now),
            "totals": _totals(db),
            "recent_documents": _recently_created(db, now),
        }

    return target.get_or_set(
        ANALYTICS_KEY, compute, ttl=settings.analytics_cache_ttl_seconds
    )


def export_analytics_csv(db: Session) -> str:
    data = get_optimized_analytics(db)
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["section", "label", "count"])
    for row in data["documents_by_category"]:
        writer.writerow(["category", row["name"], row["count"]])
    for row in data["documents_by_author"]:
        writer.writerow(["author", row["name"], row["count"]])
    for row in data["review_status"]:
        writer.writerow(["review_status", row["status"], row["count"]])
    for label, count in data["totals"].items():
        writer.writerow(["totals", label, count])
    writer.writerow(["recent", f"created_last_{RECENT_WINDOW_DAYS}_days", data["recent_documents"]])
    return buffer.getvalue()
