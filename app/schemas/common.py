from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ListResponse(BaseModel, Generic[T]):
    items: list[T]
    count: int
    limit: int | None = None
    offset: int | None = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class PagedResponse(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str
