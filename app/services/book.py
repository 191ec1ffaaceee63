from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.errors import authorization_error, validation_error
from app.models.docman import Book, Category, CategoryType, Document, book_owners
from app.models.user import User
from app.schemas.docman import BookCreate, BookUpdate
from app.services.access import can_modify_book
from app.services.common import (
    coerce_uuid,
    get_or_404,
    is_uuid,
    page_window,
    pagination_meta,
)
from app.services.document_query import day_bounds, escape_like
from app.services.validation import sanitize_string

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

SORT_FIELDS = {
    "title": Book.title,
    "created_at": Book.created_at,
    "createdAt": Book.created_at,
    "updated_at": Book.updated_at,
    "updatedAt": Book.updated_at,
}

_BOOK_LOADERS = (
    selectinload(Book.category),
    selectinload(Book.documents),
    selectinload(Book.owners),
)


def _book_category(db: Session, category_id) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise validation_error("Category not found")
    if category.category_type != CategoryType.book:
        raise validation_error("Category must be of type 'Book'")
    return category


def _load(db: Session, model, ids, label: str) -> list:
    ids = list(dict.fromkeys(ids))
    if not ids:
        return []
    rows = db.scalars(select(model).where(model.id.in_(ids))).all()
    if len(rows) != len(ids):
        raise validation_error(f"Unknown {label}")
    by_id = {row.id: row for row in rows}
    return [by_id[i] for i in ids]


def build_book_filter(params: Mapping[str, Any]) -> list:
    conditions = []
    category = params.get("category")
    if category and is_uuid(category):
        conditions.append(Book.category_id == coerce_uuid(category))
    owner = params.get("owner")
    if owner and is_uuid(owner):
        conditions.append(
            Book.id.in_(
                select(book_owners.c.book_id).where(
                    book_owners.c.user_id == coerce_uuid(owner)
                )
            )
        )
    search = params.get("search")
    if isinstance(search, str) and search.strip():
        pattern = f"%{escape_like(search.strip()[:100])}%"
        conditions.append(
            or_(
                Book.title.ilike(pattern, escape="\\"),
                Book.description.ilike(pattern, escape="\\"),
            )
        )
    start, end = day_bounds(params.get("start_date"), params.get("end_date"))
    if start is not None:
        conditions.append(Book.created_at >= start)
    if end is not None:
        conditions.append(Book.created_at <= end)
    return conditions


class Books:
    @staticmethod
    def list(
        db: Session,
        params: Mapping[str, Any],
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict:
        page, limit, offset = page_window(page, limit, MAX_PAGE_SIZE)
        conditions = build_book_filter(params)
        count_stmt = select(func.count(Book.id))
        stmt = select(Book).options(*_BOOK_LOADERS)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            stmt = stmt.where(*conditions)
        total = db.scalar(count_stmt) or 0

        column = SORT_FIELDS.get(params.get("sort_by") or "", Book.created_at)
        order = column.asc() if params.get("sort_order") == "asc" else column.desc()
        items = db.scalars(stmt.order_by(order, Book.id).limit(limit).offset(offset)).all()
        return {"items": items, "pagination": pagination_meta(total, page, limit)}

    @staticmethod
    def get(db: Session, book_id: str) -> Book:
        return get_or_404(db, Book, book_id, "Book")

    @staticmethod
    def create(db: Session, payload: BookCreate, user: User) -> Book:
        title = sanitize_string(payload.title, 200)
        if not title:
            raise validation_error("Book title is required")
        category = _book_category(db, payload.category_id)
        book = Book(
            title=title,
            description=sanitize_string(payload.description) or None,
            category_id=category.id,
            last_updated_by_id=user.id,
        )
        book.documents = _load(db, payload.documents, "document")
        book.owners = _load(db, payload.owners, "owner") if payload.owners else [user]
        db.add(book)
        db.commit()
        db.refresh(book)
        logger.info("Created book %s", book.id)
        return book

    @staticmethod
    def update(db: Session, book_id: str, payload: BookUpdate, user: User) -> Book:
        book = Books.get(db, book_id)
        if not can_modify_book(user, book):
            raise authorization_error("Not authorized to update this book")
        data = payload.model_dump(exclude_unset=True)
        if data.get("title") is not None:
            book.title = sanitize_string(data["title"], 200) or book.title
        if "description" in data:
            book.description = sanitize_string(data["description"]) or None
        if data.get("category_id") is not None and data["category_id"] != book.category_id:
            book.category_id = _book_category(db, data["category_id"]).id
        if data.get("documents") is not None:
            book.documents = _load(db, data["documents"], "document")
        if data.get("owners") is not None:
            book.owners = _load(db, data["owners"], "owner")
        book.last_updated_by_id = user.id
        db.commit()
        db.refresh(book)
        logger.info("Updated book %s", book.id)
        return book

    @staticmethod
    def delete(db: Session, book_id: str, user: User) -> None:
        book = Books.get(db, book_id)
        if not can_modify_book(user, book):
            raise authorization_error("Not authorized to delete this book")
        db.delete(book)
        db.commit()
        logger.info("Deleted book %s", book_id)

    @staticmethod
    def add_document(db: Session, book_id: str, document_id, user: User) -> Book:
        book = Books.get(db, book_id)
        if not can_modify_book(user, book):
            raise authorization_error("Not authorized to modify this book")
        document = get_or_404(db, Document, str(document_id), "Document")
        if document not in book.documents:
            book.documents.append(document)
        book.last_updated_by_id = user.id
        db.commit()
        db.refresh(book)
        logger.info("Added document %s to book %s", document.id, book.id)
        return book

    @staticmethod
    def remove_document(db: Session, book_id: str, document_id, user: User) -> Book:
        book = Books.get(db, book_id)
        if not can_modify_book(user, book):
            raise authorization_error("Not authorized to modify this book")
        book.documents = [d for d in book.documents if str(d.id) != str(document_id)]
        book.last_updated_by_id = user.id
        db.commit()
        db.refresh(book)
        logger.info("Removed document %s from book %s", document_id, book.id)
        return book


books = Books()
