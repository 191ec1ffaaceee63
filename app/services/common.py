import math
import uuid

from app.errors import not_found, validation_error


def coerce_uuid(value):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise validation_error(f"Invalid id: {value}")


def is_uuid(value) -> bool:
    if isinstance(value, uuid.UUID):
        return True
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def get_or_404(db, model, entity_id, resource: str):
    """Fetch by primary key; ids that do not parse count as missing."""
    if not is_uuid(entity_id):
        raise not_found(resource)
    entity = db.get(model, coerce_uuid(entity_id))
    if entity is None:
        raise not_found(resource)
    return entity


def apply_ordering(query, order_by, order_dir, allowed_columns):
    if order_by not in allowed_columns:
        raise validation_error(
            f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}"
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit, offset):
    return query.limit(limit).offset(offset)


def page_window(page: int, limit: int, max_limit: int = 100) -> tuple[int, int, int]:
    """Clamp page/limit and return ``(page, limit, offset)``."""
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 10), 1), max_limit)
    return page, limit, (page - 1) * limit


def pagination_meta(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }
