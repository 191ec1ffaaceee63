from fastapi import UploadFile

from app.db import get_db
from app.services.auth_dependencies import (
    get_current_token,
    require_role,
    require_user_auth,
)
from app.services.storage import UploadedFile


def read_upload(upload: UploadFile | None) -> UploadedFile | None:
    """Read a multipart upload into memory; ``None`` when no file was sent."""
    if upload is None or not upload.filename:
        return None
    return UploadedFile(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        content=upload.file.read(),
    )


__all__ = [
    "get_current_token",
    "get_db",
    "read_upload",
    "require_role",
    "require_user_auth",
]
