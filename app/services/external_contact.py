from __future__ import annotations

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.errors import conflict, not_found, validation_error
from app.models.docman import Document, ExternalContact, ExternalContactType
from app.schemas.docman import (
    ExternalContactCreate,
    ExternalContactTypeCreate,
    ExternalContactTypeUpdate,
    ExternalContactUpdate,
)
from app.services.common import apply_ordering, apply_pagination, get_or_404
from app.services.response import ListResponseMixin
from app.services.validation import sanitize_string, validate_email, validate_phone

logger = logging.getLogger(__name__)


def _unique_type_name(db: Session, name: str, exclude_id=None) -> str:
    name = sanitize_string(name, 200)
    if not name:
        raise validation_error("Name is required for external contact type")
    stmt = select(ExternalContactType.id).where(
        func.lower(ExternalContactType.name) == name.lower()
    )
    if exclude_id is not None:
        stmt = stmt.where(ExternalContactType.id != exclude_id)
    if db.scalar(stmt):
        raise conflict("External contact type already exists")
    return name


def _contact_fields(db: Session, data: dict) -> dict:
    if "name" in data:
        data["name"] = sanitize_string(data["name"], 200)
        if not data["name"]:
            raise validation_error("Name is required for external contact")
    if "email" in data:
        result = validate_email(data["email"])
        if not result.is_valid:
            raise validation_error(result.error or "Invalid email")
        data["email"] = result.sanitized
    if "phone_number" in data:
        result = validate_phone(data["phone_number"])
        if not result.is_valid:
            raise validation_error(result.error or "Invalid phone number")
        data["phone_number"] = result.sanitized or None
    if data.get("type_id") is not None and not db.get(
        ExternalContactType, data["type_id"]
    ):
        raise not_found("External contact type")
    if data.get("document_id") is not None and not db.get(Document, data["document_id"]):
        raise not_found("Document")
    return data


class ExternalContactTypes(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ExternalContactTypeCreate) -> ExternalContactType:
        contact_type = ExternalContactType(
            name=_unique_type_name(db, payload.name),
            description=sanitize_string(payload.description) or None,
        )
        db.add(contact_type)
        db.commit()
        db.refresh(contact_type)
        logger.info("Created external contact type %s", contact_type.id)
        return contact_type

    @staticmethod
    def get(db: Session, type_id: str) -> ExternalContactType:
        return get_or_404(db, ExternalContactType, type_id, "External contact type")

    @staticmethod
    def list(db: Session, limit: int, offset: int) -> List[ExternalContactType]:
        query = db.query(ExternalContactType).order_by(ExternalContactType.name.asc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(
        db: Session, type_id: str, payload: ExternalContactTypeUpdate
    ) -> ExternalContactType:
        contact_type = ExternalContactTypes.get(db, type_id)
        data = payload.model_dump(exclude_unset=True)
        if "name" in data:
            contact_type.name = _unique_type_name(
                db, data["name"] or "", exclude_id=contact_type.id
            )
        if "description" in data:
            contact_type.description = sanitize_string(data["description"]) or None
        db.commit()
        db.refresh(contact_type)
        logger.info("Updated external contact type %s", contact_type.id)
        return contact_type

    @staticmethod
    def delete(db: Session, type_id: str) -> None:
        contact_type = ExternalContactTypes.get(db, type_id)
        db.delete(contact_type)
        db.commit()
        logger.info("Deleted external contact type %s", type_id)


class ExternalContacts(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ExternalContactCreate) -> ExternalContact:
        data = _contact_fields(db, payload.model_dump())
        contact = ExternalContact(**data)
        db.add(contact)
        db.commit()
        db.refresh(contact)
        logger.info("Created external contact %s", contact.id)
        return contact

    @staticmethod
    def get(db: Session, contact_id: str) -> ExternalContact:
        return get_or_404(db, ExternalContact, contact_id, "External contact")

    @staticmethod
    def list(
        db: Session,
        type_id: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[ExternalContact]:
        query = db.query(ExternalContact).options(
            selectinload(ExternalContact.contact_type)
        )
        if type_id:
            query = query.filter(
                ExternalContact.type_id == ExternalContactTypes.get(db, type_id).id
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"name": ExternalContact.name, "created_at": ExternalContact.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_by_document(db: Session, document_id: str) -> List[ExternalContact]:
        document = get_or_404(db, Document, document_id, "Document")
        return db.scalars(
            select(ExternalContact)
            .options(selectinload(ExternalContact.contact_type))
            .where(ExternalContact.document_id == document.id)
            .order_by(ExternalContact.name.asc())
        ).all()

    @staticmethod
    def update(
        db: Session, contact_id: str, payload: ExternalContactUpdate
    ) -> ExternalContact:
        contact = ExternalContacts.get(db, contact_id)
        data = _contact_fields(db, payload.model_dump(exclude_unset=True))
        for key, value in data.items():
            setattr(contact, key, value)
        db.commit()
        db.refresh(contact)
        logger.info("Updated external contact %s", contact.id)
        return contact

    @staticmethod
    def delete(db: Session, contact_id: str) -> None:
        contact = ExternalContacts.get(db, contact_id)
        db.delete(contact)
        db.commit()
        logger.info("Deleted external contact %s", contact_id)


external_contact_types = ExternalContactTypes()
external_contacts = ExternalContacts()
