from __future__ import annotations

from pydantic import BaseModel

from app.schemas.user import UserRead


class RegisterRequest(BaseModel):
    firstname: str
    lastname: str
    email: str
    username: str
    password: str
    telephone: str | None = None
    title: str | None = None
    department: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str
