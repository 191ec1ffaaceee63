from __future__ import annotations

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.errors import conflict, validation_error
from app.models.docman import Book, Category, CategoryType, Document
from app.schemas.docman import CategoryCreate, CategoryUpdate
from app.services.common import apply_ordering, apply_pagination, get_or_404
from app.services.response import ListResponseMixin
from app.services.validation import sanitize_string, validate_category_name

logger = logging.getLogger(__name__)


def _checked_name(db: Session, name: str, exclude_id=None) -> str:
    result = validate_category_name(name)
    if not result.is_valid:
        raise validation_error(result.error or "Invalid category name")
    stmt = select(Category.id).where(func.lower(Category.name) == result.sanitized.lower())
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    if db.scalar(stmt):
        raise conflict("Category already exists")
    return result.sanitized


class Categories(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: CategoryCreate) -> Category:
        category = Category(
            name=_checked_name(db, payload.name),
            description=sanitize_string(payload.description) or None,
            category_type=payload.category_type,
        )
        db.add(category)
        db.commit()
        db.refresh(category)
        logger.info("Created category %s", category.id)
        return category

    @staticmethod
    def get(db: Session, category_id: str) -> Category:
        return get_or_404(db, Category, category_id, "Category")

    @staticmethod
    def list(
        db: Session,
        category_type: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[Category]:
        query = db.query(Category)
        if category_type:
            try:
                wanted = CategoryType(category_type)
            except ValueError:
                raise validation_error(f"Invalid category type: {category_type}")
            query = query.filter(Category.category_type == wanted)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"name": Category.name, "created_at": Category.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, category_id: str, payload: CategoryUpdate) -> Category:
        category = Categories.get(db, category_id)
        data = payload.model_dump(exclude_unset=True)
        if "name" in data:
            data["name"] = _checked_name(db, data["name"], exclude_id=category.id)
        if "description" in data:
            data["description"] = sanitize_string(data["description"]) or None
        if data.get("category_type") is None:
            data.pop("category_type", None)
        for key, value in data.items():
            setattr(category, key, value)
        db.commit()
        db.refresh(category)
        logger.info("Updated category %s", category.id)
        return category

    @staticmethod
    def delete(db: Session, category_id: str) -> None:
        category = Categories.get(db, category_id)
        in_use = db.scalar(
            select(func.count(Document.id)).where(Document.category_id == category.id)
        ) or db.scalar(
            select(func.count(Book.id)).where(Book.category_id == category.id)
        )
        if in_use:
            raise conflict("Category is in use and cannot be deleted")
        db.delete(category)
        db.commit()
        logger.info("Deleted category %s", category_id)


categories = Categories()
