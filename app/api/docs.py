from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api.deps import get_db, read_upload, require_role
from app.errors import validation_error
from app.models.user import User
from app.schemas.common import PagedResponse
from app.schemas.docman import (
    DocumentCreate,
    DocumentDetail,
    DocumentFileRead,
    DocumentRead,
    DocumentSearchResponse,
    DocumentUpdate,
    DownloadURLResponse,
    ReviewToggleRequest,
)
from app.services.analytics import optimized_document_search
from app.services.document import documents
from app.services.document_query import parse_document_fields

router = APIRouter(prefix="/docs", tags=["documents"])

_LIST_FIELDS = ("stakeholders", "owners", "external_contacts")


def document_form(
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    category_id: str | None = Form(default=None),
    stakeholders: str | None = Form(default=None),
    owners: str | None = Form(default=None),
    external_contacts: str | None = Form(default=None),
    review_date: str | None = Form(default=None),
    opens_for_review: str | None = Form(default=None),
    review_interval: str | None = Form(default=None),
    review_interval_days: str | None = Form(default=None),
    review_period: str | None = Form(default=None),
    change_log: str | None = Form(default=None),
) -> dict[str, Any]:
    return {
        "title": title,
        "description": description,
        "category_id": category_id,
        "stakeholders": stakeholders,
        "owners": owners,
        "external_contacts": external_contacts,
        "review_date": review_date,
        "opens_for_review": opens_for_review,
        "review_interval": review_interval,
        "review_interval_days": review_interval_days,
        "review_period": review_period,
        "change_log": change_log,
    }


def _form_payload(model, fields: dict[str, Any]):
    """Build a document schema from multipart fields.

    Empty form values count as not sent; the list fields arrive as JSON
    strings.
    """
    data = {
        key: value
        for key, value in fields.items()
        if value not in (None, "") and key not in _LIST_FIELDS
    }
    data.update(parse_document_fields(fields))
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = {
            ".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()
        }
        raise validation_error(
            f"Validation failed: {', '.join(sorted(errors))}", errors
        )


# ------------------------------------------------------------------
# Listing and search
# ------------------------------------------------------------------


@router.get("", response_model=PagedResponse[DocumentRead])
def list_documents(
    search: str | None = None,
    category: str | None = None,
    author: str | None = None,
    review_status: str | None = Query(default=None, alias="reviewStatus"),
    overdue: bool = False,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    params = {
        "search": search,
        "category": category,
        "author": author,
        "review_status": review_status,
        "overdue": overdue,
        "start_date": start_date,
        "end_date": end_date,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    return documents.list(db, params, user, page, limit)


@router.get("/search", response_model=DocumentSearchResponse)
def search_documents(
    search: str | None = None,
    category: str | None = None,
    author: str | None = None,
    review_status: str | None = Query(default=None, alias="reviewStatus"),
    overdue: bool = False,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    limit: int = Query(default=20, ge=1, le=100),
    skip: int = Query(default=0, ge=0),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    filters = {
        "search": search,
        "category": category,
        "author": author,
        "review_status": review_status,
        "overdue": overdue,
        "start_date": start_date,
        "end_date": end_date,
    }
    options = {
        "limit": limit,
        "skip": skip,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    return optimized_document_search(db, filters, options, user)


# ------------------------------------------------------------------
# Document CRUD
# ------------------------------------------------------------------


@router.post("", response_model=DocumentDetail, status_code=status.HTTP_201_CREATED)
def create_document(
    fields: dict = Depends(document_form),
    file: UploadFile | None = File(default=None),
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    payload = _form_payload(DocumentCreate, fields)
    return documents.create(db, payload, read_upload(file), user)


@router.get("/{document_id}", response_model=DocumentDetail)
def get_document(
    document_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return documents.get(db, document_id, user)


@router.put("/{document_id}", response_model=DocumentDetail)
def update_document(
    document_id: str,
    fields: dict = Depends(document_form),
    file: UploadFile | None = File(default=None),
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    payload = _form_payload(DocumentUpdate, fields)
    return documents.update(db, document_id, payload, read_upload(file), user)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    documents.delete(db, document_id, user)


# ------------------------------------------------------------------
# Files and review sign-off
# ------------------------------------------------------------------


@router.post(
    "/{document_id}/upload",
    response_model=DocumentFileRead,
    status_code=status.HTTP_201_CREATED,
)
def upload_file_version(
    document_id: str,
    file: UploadFile = File(...),
    change_log: str | None = Form(default=None),
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    upload = read_upload(file)
    if upload is None:
        raise validation_error("No file uploaded")
    return documents.upload_file_version(db, document_id, upload, change_log, user)


@router.get("/{document_id}/files", response_model=list[DocumentFileRead])
def list_files(
    document_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return documents.list_files(db, document_id, user)


@router.get("/{document_id}/download", response_model=DownloadURLResponse)
def download_document(
    document_id: str,
    version: int | None = Query(default=None, ge=1),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return documents.download_url(db, document_id, user, version)


@router.put("/{document_id}/review", response_model=DocumentDetail)
def toggle_review(
    document_id: str,
    payload: ReviewToggleRequest,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return documents.set_review_completed(
        db, document_id, payload.completed, payload.notes, user
    )

