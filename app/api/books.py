from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.models.user import User
from app.schemas.common import PagedResponse
from app.schemas.docman import BookCreate, BookDocumentRequest, BookRead, BookUpdate
from app.services.book import books

router = APIRouter(prefix="/books", tags=["books"])


@router.get(
    "",
    response_model=PagedResponse[BookRead],
    dependencies=[Depends(require_role("viewer"))],
)
def list_books(
    search: str | None = None,
    category: str | None = None,
    owner: str | None = None,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    params = {
        "search": search,
        "category": category,
        "owner": owner,
        "start_date": start_date,
        "end_date": end_date,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    return books.list(db, params, page, limit)


@router.get(
    "/{book_id}",
    response_model=BookRead,
    dependencies=[Depends(require_role("viewer"))],
)
def get_book(book_id: str, db: Session = Depends(get_db)):
    return books.get(db, book_id)


@router.post("", response_model=BookRead, status_code=status.HTTP_201_CREATED)
def create_book(
    payload: BookCreate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return books.create(db, payload, user)


@router.put("/{book_id}", response_model=BookRead)
def update_book(
    book_id: str,
    payload: BookUpdate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return books.update(db, book_id, payload, user)


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(
    book_id: str,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    books.delete(db, book_id, user)


@router.post("/{book_id}/documents", response_model=BookRead)
def add_document_to_book(
    book_id: str,
    payload: BookDocumentRequest,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return books.add_document(db, book_id, payload.document_id, user)


@router.delete("/{book_id}/documents/{document_id}", response_model=BookRead)
def remove_document_from_book(
    book_id: str,
    document_id: str,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return books.remove_document(db, book_id, document_id, user)
