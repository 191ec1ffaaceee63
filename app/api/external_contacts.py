from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.schemas.common import ListResponse
from app.schemas.docman import (
    ExternalContactCreate,
    ExternalContactRead,
    ExternalContactTypeCreate,
    ExternalContactTypeRead,
    ExternalContactTypeUpdate,
    ExternalContactUpdate,
)
from app.services.external_contact import external_contact_types, external_contacts

router = APIRouter(prefix="/external-contacts", tags=["external-contacts"])

_admin = [Depends(require_role("admin"))]
_viewer = [Depends(require_role("viewer"))]


# ------------------------------------------------------------------
# Contact types
# ------------------------------------------------------------------


@router.get(
    "/types", response_model=ListResponse[ExternalContactTypeRead], dependencies=_viewer
)
def list_contact_types(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return external_contact_types.list_response(db, limit, offset)


@router.post(
    "/types",
    response_model=ExternalContactTypeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=_admin,
)
def create_contact_type(
    payload: ExternalContactTypeCreate, db: Session = Depends(get_db)
):
    return external_contact_types.create(db, payload)


@router.put(
    "/types/{type_id}", response_model=ExternalContactTypeRead, dependencies=_admin
)
def update_contact_type(
    type_id: str, payload: ExternalContactTypeUpdate, db: Session = Depends(get_db)
):
    return external_contact_types.update(db, type_id, payload)


@router.delete(
    "/types/{type_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=_admin
)
def delete_contact_type(type_id: str, db: Session = Depends(get_db)):
    external_contact_types.delete(db, type_id)


# ------------------------------------------------------------------
# Contacts
# ------------------------------------------------------------------


@router.get(
    "", response_model=ListResponse[ExternalContactRead], dependencies=_admin
)
def list_contacts(
    type_id: str | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return external_contacts.list_response(
        db, type_id, order_by, order_dir, limit, offset
    )


@router.post(
    "",
    response_model=ExternalContactRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=_admin,
)
def create_contact(payload: ExternalContactCreate, db: Session = Depends(get_db)):
    return external_contacts.create(db, payload)


@router.get(
    "/document/{document_id}",
    response_model=list[ExternalContactRead],
    dependencies=_viewer,
)
def list_document_contacts(document_id: str, db: Session = Depends(get_db)):
    return external_contacts.list_by_document(db, document_id)


@router.get("/{contact_id}", response_model=ExternalContactRead, dependencies=_admin)
def get_contact(contact_id: str, db: Session = Depends(get_db)):
    return external_contacts.get(db, contact_id)


@router.put("/{contact_id}", response_model=ExternalContactRead, dependencies=_admin)
def update_contact(
    contact_id: str, payload: ExternalContactUpdate, db: Session = Depends(get_db)
):
    return external_contacts.update(db, contact_id, payload)


@router.delete(
    "/{contact_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=_admin
)
def delete_contact(contact_id: str, db: Session = Depends(get_db)):
    external_contacts.delete(db, contact_id)
