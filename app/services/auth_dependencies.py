from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import authentication_error, authorization_error
from app.models.user import User
from app.services.access import has_role, role_level, role_value
from app.services.auth import decode_access_token, is_token_blacklisted
from app.services.common import coerce_uuid


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise authentication_error("Authentication required")
    return token.strip()


def get_current_token(request: Request, db: Session = Depends(get_db)) -> dict:
    claims = decode_access_token(_bearer_token(request))
    if is_token_blacklisted(db, claims["jti"]):
        raise authentication_error("Token has been revoked")
    return claims


def require_user_auth(
    request: Request,
    claims: dict = Depends(get_current_token),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, coerce_uuid(claims["sub"]))
    if not user or not user.is_active:
        raise authentication_error("User no longer exists")
    request.state.user_id = str(user.id)
    return user


def require_role(*roles: str):
    """Dependency admitting users at or above the lowest of ``roles``."""
    minimum = min(roles, key=role_level)

    def checker(user: User = Depends(require_user_auth)) -> User:
        if not has_role(user.role, minimum):
            raise authorization_error(
                f"Role '{role_value(user.role)}' is not permitted; requires {minimum}"
            )
        return user

    return checker
