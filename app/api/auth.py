from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_token, get_db, require_user_auth
from app.config import settings
from app.models.user import User
from app.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from app.schemas.common import MessageResponse
from app.schemas.user import UserRead
from app.services.auth import auth
from app.services.rate_limit import RateLimiter

router = APIRouter(prefix="/auth", tags=["auth"])

login_limiter = RateLimiter(
    name="login", limit=settings.login_rate_limit, window=settings.login_rate_window
)
register_limiter = RateLimiter(
    name="register",
    limit=settings.register_rate_limit,
    window=settings.register_rate_window,
)
password_reset_limiter = RateLimiter(
    name="password-reset",
    limit=settings.password_reset_rate_limit,
    window=settings.password_reset_rate_window,
)

RATE_LIMITERS = (login_limiter, register_limiter, password_reset_limiter)


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(register_limiter)],
)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    return auth.register(db, payload)


@router.post(
    "/login", response_model=TokenResponse, dependencies=[Depends(login_limiter)]
)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user, token = auth.login(db, payload)
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": settings.token_expire_minutes * 60,
        "user": user,
    }


@router.post("/logout", response_model=MessageResponse)
def logout(claims: dict = Depends(get_current_token), db: Session = Depends(get_db)):
    auth.logout(db, claims)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserRead)
def me(user: User = Depends(require_user_auth)):
    return user


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    dependencies=[Depends(password_reset_limiter)],
)
def forgot_password(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    auth.forgot_password(db, payload)
    return {
        "message": "If an account exists for that email, a reset link has been sent"
    }


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    dependencies=[Depends(password_reset_limiter)],
)
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    auth.reset_password(db, payload)
    return {"message": "Password has been reset"}
