from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import (
    authentication_error,
    conflict,
    format_validation_errors,
    validation_error,
)
from app.models.docman import as_utc
from app.models.user import BlacklistedToken, User, UserRole
from app.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from app.services import validation
from app.services.event import EventType, publish_event

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Passwords and tokens
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    secret = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_BCRYPT_MAX_BYTES], password_hash.encode("utf-8")
        )
    except ValueError:
        return False


def create_access_token(user: User, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.token_expire_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.token_key, algorithm=settings.token_algorithm)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.token_key,
            algorithms=[settings.token_algorithm],
            options={"require": ["sub", "exp", "jti"]},
        )
    except jwt.ExpiredSignatureError:
        raise authentication_error("Token has expired")
    except jwt.InvalidTokenError:
        raise authentication_error("Invalid token")


def is_token_blacklisted(db: Session, jti: str) -> bool:
    return (
        db.scalar(select(BlacklistedToken.id).where(BlacklistedToken.jti == jti))
        is not None
    )


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Account flows
# ---------------------------------------------------------------------------


class Auth:
    @staticmethod
    def register(db: Session, payload: RegisterRequest) -> User:
        checks = [
            ("firstname", validation.validate_name(payload.firstname, "First name")),
            ("lastname", validation.validate_name(payload.lastname, "Last name")),
            ("email", validation.validate_email(payload.email)),
            ("username", validation.validate_username(payload.username)),
            ("password", validation.validate_password(payload.password)),
            ("telephone", validation.validate_phone(payload.telephone)),
            ("title", validation.validate_title(payload.title)),
        ]
        errors = [(field, result.error) for field, result in checks if not result.is_valid]
        if errors:
            raise format_validation_errors(errors)
        values = {field: result.sanitized for field, result in checks}

        existing = db.scalar(
            select(User).where(
                or_(
                    func.lower(User.email) == values["email"],
                    func.lower(User.username) == values["username"].lower(),
                )
            )
        )
        if existing:
            field = "Email" if existing.email.lower() == values["email"] else "Username"
            raise conflict(f"{field} already exists")

        user = User(
            firstname=values["firstname"],
            lastname=values["lastname"],
            email=values["email"],
            username=values["username"],
            password_hash=hash_password(values["password"]),
            telephone=values["telephone"] or None,
            title=values["title"] or None,
            department=validation.sanitize_string(payload.department) or None,
            role=UserRole.viewer,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Registered user %s", user.id)
        return user

    @staticmethod
    def login(db: Session, payload: LoginRequest) -> tuple[User, str]:
        email = validation.sanitize_email(payload.email)
        if not email or not payload.password:
            raise validation_error("Email and password are required")
        user = db.scalar(select(User).where(func.lower(User.email) == email))
        if not user or not user.is_active:
            raise authentication_error("Invalid email or password")
        if not verify_password(payload.password, user.password_hash):
            logger.warning("Failed login for user %s", user.id)
            raise authentication_error("Invalid email or password")
        logger.info("User %s logged in", user.id)
        return user, create_access_token(user)

    @staticmethod
    def logout(db: Session, claims: dict) -> None:
        jti = claims["jti"]
        if is_token_blacklisted(db, jti):
            return
        db.add(
            BlacklistedToken(
                jti=jti,
                user_id=uuid.UUID(claims["sub"]),
                expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            )
        )
        db.commit()
        logger.info("Blacklisted token for user %s", claims["sub"])

    @staticmethod
    def forgot_password(db: Session, payload: ForgotPasswordRequest) -> None:
        """Issue a reset token; unknown addresses are accepted silently."""
        email = validation.sanitize_email(payload.email)
        user = db.scalar(select(User).where(func.lower(User.email) == email))
        if not user:
            logger.info("Password reset requested for unknown address")
            return
        token = secrets.token_hex(32)
        user.reset_password_token = _hash_reset_token(token)
        user.reset_password_expires = datetime.now(timezone.utc) + timedelta(
            minutes=settings.password_reset_expire_minutes
        )
        db.commit()
        reset_url = f"{settings.frontend_url}/reset-password/{token}"
        publish_event(
            EventType.password_reset_requested,
            entity_type="user",
            entity_id=user.id,
            actor_id=user.id,
            payload={"email": user.email, "reset_url": reset_url},
        )
        logger.info("Issued password reset token for user %s", user.id)

    @staticmethod
    def reset_password(db: Session, payload: ResetPasswordRequest) -> User:
        result = validation.validate_password(payload.password)
        if not result.is_valid:
            raise validation_error(result.error or "Invalid password")
        user = db.scalar(
            select(User).where(
                User.reset_password_token == _hash_reset_token(payload.token)
            )
        )
        now = datetime.now(timezone.utc)
        if (
            not user
            or user.reset_password_expires is None
            or as_utc(user.reset_password_expires) <= now
        ):
            raise validation_error("Password reset token is invalid or has expired")
        user.password_hash = hash_password(payload.password)
        user.reset_password_token = None
        user.reset_password_expires = None
        db.commit()
        db.refresh(user)
        logger.info("Reset password for user %s", user.id)
        return user


auth = Auth()
