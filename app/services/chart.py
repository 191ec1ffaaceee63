"""Saved chart definitions and the group-by counts that feed them.

Only whitelisted columns may be grouped or filtered on; anything else is a
validation error rather than being passed to the database.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, List

from sqlalchemy import Enum as SAEnum
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.errors import authorization_error, validation_error
from app.models.docman import (
    Category,
    ChartDataSource,
    CustomChart,
    Document,
    Project,
    Team,
)
from app.models.user import User
from app.schemas.analytics import CustomChartCreate, CustomChartUpdate
from app.services.access import is_admin
from app.services.common import coerce_uuid, get_or_404
from app.services.validation import sanitize_string

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown"

# field name -> column, per data source
CHART_FIELDS: dict[ChartDataSource, tuple[Any, dict[str, Any]]] = {
    ChartDataSource.documents: (
        Document,
        {
            "author": Document.author_id,
            "category": Document.category_id,
            "last_updated_by": Document.last_updated_by_id,
            "review_completed_by": Document.review_completed_by_id,
            "review_completed": Document.review_completed,
            "review_interval": Document.review_interval,
            "review_period": Document.review_period,
            "mime_type": Document.mime_type,
        },
    ),
    ChartDataSource.users: (
        User,
        {
            "role": User.role,
            "department": User.department,
            "title": User.title,
            "is_active": User.is_active,
        },
    ),
    ChartDataSource.categories: (
        Category,
        {"category_type": Category.category_type},
    ),
    ChartDataSource.teams: (
        Team,
        {"owner": Team.owner_id, "is_private": Team.is_private},
    ),
    ChartDataSource.projects: (
        Project,
        {
            "status": Project.status,
            "priority": Project.priority,
            "team": Project.team_id,
            "owner": Project.owner_id,
        },
    ),
}

# fields holding a foreign key, and the model whose name labels the group
REFERENCE_FIELDS = {
    "author": User,
    "last_updated_by": User,
    "review_completed_by": User,
    "owner": User,
    "category": Category,
    "team": Team,
}


def _label(value: Any) -> str:
    if value is None:
        return UNKNOWN_LABEL
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _reference_labels(db: Session, model, ids) -> dict:
    ids = [i for i in ids if i is not None]
    if not ids:
        return {}
    rows = db.scalars(select(model).where(model.id.in_(ids))).all()
    if model is User:
        return {row.id: row.full_name for row in rows}
    return {row.id: row.name for row in rows}


def _filter_value(column, value: Any, field: str):
    if field in REFERENCE_FIELDS:
        return coerce_uuid(value)
    column_type = getattr(column, "type", None)
    if isinstance(column_type, SAEnum) and column_type.enum_class is not None:
        try:
            return column_type.enum_class(value)
        except ValueError:
            raise validation_error(f"Invalid value for filter {field}: {value}")
    return value


def _validate_fields(data_source: ChartDataSource, group_by: str, filters: dict) -> None:
    _, fields = CHART_FIELDS[data_source]
    if group_by and group_by not in fields:
        raise validation_error(
            f"Invalid group_by field for {data_source.value}. "
            f"Allowed: {', '.join(sorted(fields))}"
        )
    unknown = sorted(set(filters or {}) - set(fields))
    if unknown:
        raise validation_error(f"Invalid filter field: {', '.join(unknown)}")


def chart_data(db: Session, chart: CustomChart) -> list[dict[str, Any]]:
    """Counts per group, largest first; one ``total`` point without a group."""
    model, fields = CHART_FIELDS[chart.data_source]
    filters = chart.filters or {}
    _validate_fields(chart.data_source, chart.group_by_field, filters)

    conditions = [
        fields[key] == _filter_value(fields[key], value, key)
        for key, value in filters.items()
    ]

    if not chart.group_by_field:
        stmt = select(func.count()).select_from(model)
        if conditions:
            stmt = stmt.where(*conditions)
        return [{"label": "total", "value": db.scalar(stmt) or 0}]

    column = fields[chart.group_by_field]
    count = func.count().label("count")
    stmt = select(column, count).select_from(model)
    if conditions:
        stmt = stmt.where(*conditions)
    rows = db.execute(stmt.group_by(column).order_by(count.desc())).all()

    reference = REFERENCE_FIELDS.get(chart.group_by_field)
    labels = _reference_labels(db, reference, [r[0] for r in rows]) if reference else {}
    return [
        {
            "label": labels.get(value, UNKNOWN_LABEL) if reference else _label(value),
            "value": total,
        }
        for value, total in rows
    ]


class Charts:
    @staticmethod
    def list(db: Session, user: User) -> List[CustomChart]:
        """The user's own charts first, then public charts by others."""
        charts = db.scalars(
            select(CustomChart)
            .where(or_(CustomChart.created_by_id == user.id, CustomChart.is_public.is_(True)))
            .order_by(CustomChart.created_at.desc())
        ).all()
        own = [c for c in charts if c.created_by_id == user.id]
        return own + [c for c in charts if c.created_by_id != user.id]

    @staticmethod
    def get(db: Session, chart_id: str, user: User) -> CustomChart:
        chart = get_or_404(db, CustomChart, chart_id, "Custom chart")
        if not chart.is_public and chart.created_by_id != user.id and not is_admin(user):
            raise authorization_error("Access denied to this chart")
        return chart

    @staticmethod
    def create(db: Session, payload: CustomChartCreate, user: User) -> CustomChart:
        name = sanitize_string(payload.name, 200)
        if not name:
            raise validation_error("Chart name is required")
        _validate_fields(payload.data_source, payload.group_by_field, payload.filters)
        chart = CustomChart(
            **payload.model_dump(exclude={"name", "description"}),
            name=name,
            description=sanitize_string(payload.description),
            created_by_id=user.id,
        )
        db.add(chart)
        db.commit()
        db.refresh(chart)
        logger.info("Created custom chart %s", chart.id)
        return chart

    @staticmethod
    def update(
        db: Session, chart_id: str, payload: CustomChartUpdate, user: User
    ) -> CustomChart:
        chart = get_or_404(db, CustomChart, chart_id, "Custom chart")
        if chart.created_by_id != user.id:
            raise authorization_error("Access denied: You can only update your own charts")
        data = payload.model_dump(exclude_unset=True)
        data = {key: value for key, value in data.items() if value is not None}
        if "name" in data:
            data["name"] = sanitize_string(data["name"], 200) or chart.name
        if "description" in data:
            data["description"] = sanitize_string(data["description"])
        _validate_fields(
            data.get("data_source", chart.data_source),
            data.get("group_by_field", chart.group_by_field),
            data.get("filters", chart.filters),
        )
        for key, value in data.items():
            setattr(chart, key, value)
        db.commit()
        db.refresh(chart)
        logger.info("Updated custom chart %s", chart.id)
        return chart

    @staticmethod
    def delete(db: Session, chart_id: str, user: User) -> None:
        chart = get_or_404(db, CustomChart, chart_id, "Custom chart")
        if chart.created_by_id != user.id:
            raise authorization_error("Access denied: You can only delete your own charts")
        db.delete(chart)
        db.commit()
        logger.info("Deleted custom chart %s", chart_id)

    @staticmethod
    def data(db: Session, chart_id: str, user: User) -> dict[str, Any]:
        chart = Charts.get(db, chart_id, user)
        return {
            "chart_id": chart.id,
            "chart_type": chart.chart_type,
            "data_source": chart.data_source,
            "group_by": chart.group_by_field,
            "data": chart_data(db, chart),
        }


charts = Charts()
