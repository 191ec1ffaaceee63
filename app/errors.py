from __future__ import annotations

import enum
import logging
import re
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError, StatementError

from app.config import settings

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    validation = "VALIDATION_ERROR"
    authentication = "AUTHENTICATION_ERROR"
    authorization = "AUTHORIZATION_ERROR"
    not_found = "NOT_FOUND"
    conflict = "CONFLICT"
    rate_limit = "RATE_LIMIT_EXCEEDED"
    server = "INTERNAL_SERVER_ERROR"
    database = "DATABASE_ERROR"
    external = "EXTERNAL_SERVICE_ERROR"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.validation: 400,
    ErrorKind.authentication: 401,
    ErrorKind.authorization: 403,
    ErrorKind.not_found: 404,
    ErrorKind.conflict: 409,
    ErrorKind.rate_limit: 429,
    ErrorKind.server: 500,
    ErrorKind.database: 500,
    ErrorKind.external: 502,
}


class AppError(HTTPException):
    """Domain error with an explicit kind.

    Subclasses ``HTTPException`` so routers never translate it, and ``detail``
    stays the human-readable message for callers that only look at that.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            status_code=STATUS_CODES[kind], detail=message, headers=headers
        )
        self.kind = kind
        self.message = message
        self.details = details


def validation_error(message: str, details: Any = None) -> AppError:
    return AppError(ErrorKind.validation, message, details)


def authentication_error(message: str = "Authentication required") -> AppError:
    return AppError(
        ErrorKind.authentication, message, headers={"WWW-Authenticate": "Bearer"}
    )


def authorization_error(message: str = "Access denied") -> AppError:
    return AppError(ErrorKind.authorization, message)


def not_found(resource: str = "Resource") -> AppError:
    return AppError(ErrorKind.not_found, f"{resource} not found")


def conflict(message: str, details: Any = None) -> AppError:
    return AppError(ErrorKind.conflict, message, details)


def rate_limited(retry_after: int) -> AppError:
    return AppError(
        ErrorKind.rate_limit,
        "Too many requests, please try again later",
        details={"retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


def database_error(message: str = "Database operation failed") -> AppError:
    return AppError(ErrorKind.database, message)


def format_validation_errors(errors: list[tuple[str, str]]) -> AppError:
    """Fold ``(field, message)`` pairs into a single validation error."""
    details = {field: message for field, message in errors}
    summary = ", ".join(message for _, message in errors)
    return validation_error(f"Validation failed: {summary}", details)


_UNIQUE_FIELD_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),
    re.compile(r"Key \((\w+)\)=\(.*?\) already exists"),
)


def handle_database_error(exc: SQLAlchemyError) -> AppError:
    if isinstance(exc, IntegrityError):
        text = str(exc.orig) if exc.orig is not None else str(exc)
        for pattern in _UNIQUE_FIELD_PATTERNS:
            match = pattern.search(text)
            if match:
                field = match.group(1)
                return conflict(f"{field} already exists", {"field": field})
        return conflict("Duplicate or conflicting record")
    if isinstance(exc, (DataError, StatementError)):
        return validation_error("Invalid value for database field")
    return database_error()


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if isinstance(exc, AppError):
            code = exc.kind.value
            message = exc.message
            details = exc.details
            if exc.status_code >= 500 and settings.is_production:
                message = "Internal server error"
                details = None
            return JSONResponse(
                status_code=exc.status_code,
                content=_error_payload(code, message, details),
                headers=exc.headers,
            )
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # ctx may hold raw Exception objects that are not JSON-serialisable.
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors(include_url=False)
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        error = handle_database_error(exc)
        details = error.details
        if not settings.is_production and error.status_code >= 500:
            details = {"type": type(exc).__name__}
        message = error.message
        if error.status_code >= 500 and settings.is_production:
            message = "Internal server error"
        return JSONResponse(
            status_code=error.status_code,
            content=_error_payload(error.kind.value, message, details),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        details = None if settings.is_production else {"type": type(exc).__name__}
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", details),
        )
