"""Translate document list query parameters into SQLAlchemy filter and sort.

Malformed values are dropped rather than rejected: an invalid id, unknown
review status or unparseable date simply does not contribute a condition.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy import and_, func, or_

from app.errors import validation_error
from app.models.docman import Document
from app.services.common import is_uuid

SEARCH_MAX_LENGTH = 100
DUE_SOON_DAYS = 7
REVIEW_STATUSES = ("completed", "pending", "overdue", "due-soon", "current")
SORT_FIELDS = {
    "title": Document.title,
    "created_at": Document.created_at,
    "updated_at": Document.updated_at,
    "review_date": Document.review_date,
    "opens_for_review": Document.opens_for_review,
    "author": Document.author_id,
    "category": Document.category_id,
}
_SORT_ALIASES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "reviewDate": "review_date",
    "opensForReview": "opens_for_review",
}


@dataclass(frozen=True)
class DocumentQuery:
    search: str | None = None
    category_id: uuid.UUID | None = None
    author_id: uuid.UUID | None = None
    review_status: str | None = None
    overdue: bool = False
    created_from: datetime | None = None
    created_to: datetime | None = None
    now: datetime | None = None


def review_due_column():
    """Effective review date; ``opens_for_review`` wins over the legacy column."""
    return func.coalesce(Document.opens_for_review, Document.review_date)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _parse_day(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def day_bounds(start: Any, end: Any) -> tuple[datetime | None, datetime | None]:
    """Inclusive range from the start of ``start`` to the end of ``end``."""
    created_from = _parse_day(start)
    if created_from is not None:
        created_from = datetime.combine(
            created_from.date(), time.min, tzinfo=created_from.tzinfo
        )
    created_to = _parse_day(end)
    if created_to is not None:
        created_to = datetime.combine(
            created_to.date(), time.max, tzinfo=created_to.tzinfo
        )
    return created_from, created_to


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() in {"true", "1"}


def build_document_query(
    params: Mapping[str, Any], now: datetime | None = None
) -> DocumentQuery:
    search = params.get("search")
    if isinstance(search, str):
        search = search.strip()
        if not search or len(search) > SEARCH_MAX_LENGTH:
            search = None
    else:
        search = None

    category = params.get("category")
    author = params.get("author")
    review_status = params.get("review_status")
    if review_status not in REVIEW_STATUSES:
        review_status = None

    created_from, created_to = day_bounds(
        params.get("start_date"), params.get("end_date")
    )

    return DocumentQuery(
        search=search,
        category_id=uuid.UUID(str(category)) if is_uuid(category) else None,
        author_id=uuid.UUID(str(author)) if is_uuid(author) else None,
        review_status=review_status,
        overdue=_as_bool(params.get("overdue")),
        created_from=created_from,
        created_to=created_to,
        now=now,
    )


def _review_conditions(query: DocumentQuery, now: datetime) -> list:
    due = review_due_column()
    soon = now + timedelta(days=DUE_SOON_DAYS)
    not_completed = Document.review_completed.is_not(True)
    overdue = and_(due.is_not(None), due < now, not_completed)

    conditions = []
    if query.review_status == "completed":
        conditions.append(Document.review_completed.is_(True))
    elif query.review_status == "pending":
        conditions.append(not_completed)
    elif query.review_status == "overdue":
        conditions.append(overdue)
    elif query.review_status == "due-soon":
        conditions.append(and_(due.is_not(None), due >= now, due <= soon, not_completed))
    elif query.review_status == "current":
        conditions.append(or_(due.is_(None), due > soon))

    if query.overdue and query.review_status != "overdue":
        conditions.append(overdue)
    return conditions


def build_document_filter(query: DocumentQuery):
    """Combine the query's conditions; ``None`` when there are none."""
    now = query.now or datetime.now(timezone.utc)
    conditions = []

    if query.search:
        pattern = f"%{escape_like(query.search)}%"
        conditions.append(
            or_(
                Document.title.ilike(pattern, escape="\\"),
                Document.description.ilike(pattern, escape="\\"),
            )
        )
    if query.category_id is not None:
        conditions.append(Document.category_id == query.category_id)
    if query.author_id is not None:
        conditions.append(Document.author_id == query.author_id)

    conditions.extend(_review_conditions(query, now))

    if query.created_from is not None:
        conditions.append(Document.created_at >= query.created_from)
    if query.created_to is not None:
        conditions.append(Document.created_at <= query.created_to)

    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return and_(*conditions)


def build_document_sort(sort_by: str | None = None, sort_order: str | None = None):
    field = _SORT_ALIASES.get(sort_by or "", sort_by)
    column = SORT_FIELDS.get(field or "", Document.created_at)
    return column.asc() if sort_order == "asc" else column.desc()


def _parse_list(value: Any, field_name: str) -> list | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise validation_error(f"Invalid {field_name} format")
    if not isinstance(value, list):
        return None
    return value


def parse_document_fields(body: Mapping[str, Any]) -> dict[str, list]:
    """Decode the list-valued document fields sent as JSON strings by forms."""
    parsed: dict[str, list] = {}
    for field_name in ("stakeholders", "owners"):
        items = _parse_list(body.get(field_name), field_name)
        if items is not None:
            parsed[field_name] = [str(item) for item in items if is_uuid(item)]

    contacts = _parse_list(body.get("external_contacts"), "external contacts")
    if contacts is not None:
        parsed["external_contacts"] = [
            contact
            for contact in contacts
            if isinstance(contact, dict) and str(contact.get("name") or "").strip()
        ]
    return parsed
