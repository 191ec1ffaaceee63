"""Field validators shared by the user, auth and reference-data services.

Every validator returns a ``ValidationResult``; callers collect the failures
and raise one error through ``format_validation_errors``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
_NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9._-]+$")
_PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
_CATEGORY_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_]+$")
_TEAM_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_.'@#&]+$")
_PASSWORD_SPECIALS = "@$!%*?&"
_WHITESPACE_RE = re.compile(r"\s+")

RESERVED_USERNAMES = frozenset(
    {
        "admin",
        "administrator",
        "root",
        "system",
        "null",
        "undefined",
        "api",
        "auth",
        "login",
        "register",
    }
)
VALID_ROLES = ("viewer", "editor", "admin", "superadmin")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    sanitized: Any = None
    error: str | None = None


def _ok(value: Any) -> ValidationResult:
    return ValidationResult(True, value, None)


def _fail(error: str) -> ValidationResult:
    return ValidationResult(False, None, error)


def sanitize_string(value: Any, max_length: int | None = None) -> str:
    """Trim and collapse runs of whitespace. The text is stored as typed."""
    if value is None:
        return ""
    text = _WHITESPACE_RE.sub(" ", str(value)).strip()
    if max_length is not None:
        text = text[:max_length].rstrip()
    return text


def sanitize_email(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def validate_name(value: Any, field_name: str = "Name") -> ValidationResult:
    if not value:
        return _fail(f"{field_name} is required")
    if not isinstance(value, str):
        return _fail(f"{field_name} must be a string")
    trimmed = value.strip()
    if len(trimmed) < 2:
        return _fail(f"{field_name} must be at least 2 characters long")
    if len(trimmed) > 50:
        return _fail(f"{field_name} must be less than 50 characters")
    if not _NAME_RE.match(trimmed):
        return _fail(
            f"{field_name} can only contain letters, spaces, hyphens, and apostrophes"
        )
    return _ok(trimmed)


def validate_email(value: Any) -> ValidationResult:
    if not value:
        return _fail("Email is required")
    if not isinstance(value, str):
        return _fail("Email must be a string")
    email = sanitize_email(value)
    if len(email) > 254:
        return _fail("Email address is too long")
    if not _EMAIL_RE.match(email):
        return _fail("Please enter a valid email address")
    return _ok(email)


def validate_username(value: Any) -> ValidationResult:
    if not value:
        return _fail("Username is required")
    if not isinstance(value, str):
        return _fail("Username must be a string")
    trimmed = value.strip()
    if len(trimmed) < 3:
        return _fail("Username must be at least 3 characters long")
    if len(trimmed) > 30:
        return _fail("Username must be less than 30 characters")
    if trimmed.lower() in RESERVED_USERNAMES:
        return _fail("Username is reserved and cannot be used")
    if not _USERNAME_RE.match(trimmed):
        return _fail(
            "Username can only contain letters, numbers, periods, underscores, and hyphens"
        )
    if re.search(r"[._-]{2,}", trimmed):
        return _fail(
            "Username cannot contain consecutive periods, underscores, or hyphens"
        )
    if re.search(r"^[._-]|[._-]$", trimmed):
        return _fail(
            "Username cannot start or end with a period, underscore, or hyphen"
        )
    return _ok(trimmed)


def validate_password(value: Any) -> ValidationResult:
    if not value:
        return _fail("Password is required")
    if not isinstance(value, str):
        return _fail("Password must be a string")
    if len(value) < 8:
        return _fail("Password must be at least 8 characters long")
    if len(value) > 128:
        return _fail("Password is too long")
    if not re.search(r"[a-z]", value):
        return _fail("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", value):
        return _fail("Password must contain at least one uppercase letter")
    if not re.search(r"\d", value):
        return _fail("Password must contain at least one number")
    if not any(ch in _PASSWORD_SPECIALS for ch in value):
        return _fail(
            f"Password must contain at least one special character ({_PASSWORD_SPECIALS})"
        )
    return _ok(value)


def validate_phone(value: Any) -> ValidationResult:
    if not value:
        return _ok("")
    if not isinstance(value, str):
        return _fail("Phone number must be a string")
    cleaned = re.sub(r"[\s\-()]", "", value)
    if cleaned and not _PHONE_RE.match(cleaned):
        return _fail("Please enter a valid phone number")
    return _ok(value.strip())


def validate_title(value: Any) -> ValidationResult:
    """Job title; optional."""
    if not value:
        return _ok("")
    if not isinstance(value, str):
        return _fail("Title must be a string")
    if len(value.strip()) > 100:
        return _fail("Title must be less than 100 characters")
    return _ok(value.strip())


def validate_document_title(value: Any) -> ValidationResult:
    if not value:
        return _fail("Document title is required")
    if not isinstance(value, str):
        return _fail("Document title must be a string")
    trimmed = value.strip()
    if len(trimmed) < 3:
        return _fail("Document title must be at least 3 characters long")
    if len(trimmed) > 200:
        return _fail("Document title must be less than 200 characters")
    return _ok(trimmed)


def validate_category_name(value: Any) -> ValidationResult:
    if not value:
        return _fail("Category name is required")
    if not isinstance(value, str):
        return _fail("Category name must be a string")
    trimmed = value.strip()
    if len(trimmed) < 2:
        return _fail("Category name must be at least 2 characters long")
    if len(trimmed) > 50:
        return _fail("Category name must be less than 50 characters")
    if not _CATEGORY_NAME_RE.match(trimmed):
        return _fail(
            "Category name can only contain letters, numbers, spaces, hyphens, and underscores"
        )
    return _ok(trimmed)


def validate_team_name(value: Any) -> ValidationResult:
    if not value:
        return _fail("Team name is required")
    if not isinstance(value, str):
        return _fail("Team name must be a string")
    trimmed = value.strip()
    if len(trimmed) < 2:
        return _fail("Team name must be at least 2 characters long")
    if len(trimmed) > 100:
        return _fail("Team name must be less than 100 characters")
    if not _TEAM_NAME_RE.match(trimmed):
        return _fail("Team name contains invalid characters")
    return _ok(trimmed)


def validate_role(value: Any) -> ValidationResult:
    if not value:
        return _fail("Role is required")
    if not isinstance(value, str):
        return _fail("Role must be a string")
    if value not in VALID_ROLES:
        return _fail("Please select a valid role")
    return _ok(value)


def validate_enum(value: Any, allowed, field_name: str) -> ValidationResult:
    allowed_values = [getattr(item, "value", item) for item in allowed]
    if value not in allowed_values:
        return _fail(f"Invalid {field_name}. Allowed: {', '.join(allowed_values)}")
    return _ok(value)


def validate_date(value: Any, field_name: str = "Date") -> ValidationResult:
    """Accept a datetime, date or ISO-8601 string; result is timezone-aware UTC."""
    if value is None or value == "":
        return _ok(None)
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return _fail(f"{field_name} must be a valid date")
    else:
        return _fail(f"{field_name} must be a valid date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return _ok(parsed)


def are_all_object_fields_empty(obj: Any) -> bool:
    """True when ``obj`` is a mapping whose values are all None or blank."""
    if not isinstance(obj, dict):
        return False
    for value in obj.values():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, dict)):
            if value:
                return False
            continue
        if str(value).strip() != "":
            return False
    return True
