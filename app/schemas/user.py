from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.user import UserRole


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    firstname: str
    lastname: str
    email: str


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    firstname: str
    lastname: str
    email: str
    username: str
    role: UserRole
    telephone: str | None = None
    title: str | None = None
    department: str | None = None
    profile_picture: str | None = None
    background_image: str | None = None
    theme: str | None = None
    bio: str | None = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class UserUpdate(BaseModel):
    firstname: str | None = None
    lastname: str | None = None
    email: str | None = None
    username: str | None = None
    password: str | None = None
    role: str | None = None
    telephone: str | None = None
    title: str | None = None
    department: str | None = None
    theme: str | None = Field(default=None, max_length=40)
    bio: str | None = Field(default=None, max_length=500)
