import os
import uuid
from pathlib import Path

from app.config import settings
from app.errors import validation_error
from app.services.storage import UploadedFile

JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
GIF_SIGNATURE = b"GIF8"
WEBP_RIFF_SIGNATURE = b"RIFF"
WEBP_FORMAT_SIGNATURE = b"WEBP"

IMAGE_KINDS = ("profile", "background")


def get_allowed_types() -> set[str]:
    return set(settings.avatar_allowed_types.split(","))


def validate_image(upload: UploadedFile) -> None:
    allowed_types = get_allowed_types()
    if upload.content_type not in allowed_types:
        raise validation_error(
            f"Invalid file type. Allowed: {', '.join(sorted(allowed_types))}"
        )
    if not upload.content:
        raise validation_error("Uploaded image is empty")

    detected_type = _detect_content_type_from_magic(upload.content[:512])
    if detected_type is None:
        raise validation_error("Invalid file signature for image upload.")
    if detected_type not in allowed_types:
        raise validation_error(
            f"Invalid file signature. Allowed: {', '.join(sorted(allowed_types))}"
        )
    if detected_type != upload.content_type:
        raise validation_error("File content does not match declared content type.")

    if upload.size > settings.avatar_max_size_bytes:
        raise validation_error(
            f"File too large. Maximum size: {settings.avatar_max_size_bytes // 1024 // 1024}MB"
        )


def save_image(upload: UploadedFile, user_id: str, kind: str = "profile") -> str:
    """Store a profile or background image and return its public URL."""
    if kind not in IMAGE_KINDS:
        raise validation_error(f"Unknown image kind: {kind}")
    validate_image(upload)

    upload_dir = Path(settings.avatar_upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    ext = _get_extension(upload.content_type)
    filename = f"{user_id}_{kind}_{uuid.uuid4().hex[:8]}{ext}"
    with open(upload_dir / filename, "wb") as f:
        f.write(upload.content)

    return f"{settings.avatar_url_prefix}/{filename}"


def delete_image(image_url: str | None) -> None:
    if not image_url:
        return
    if image_url.startswith(settings.avatar_url_prefix):
        filename = image_url.replace(settings.avatar_url_prefix + "/", "")
        file_path = Path(settings.avatar_upload_dir) / filename
        if file_path.exists():
            os.remove(file_path)


def _get_extension(content_type: str) -> str:
    extensions = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/gif": ".gif",
        "image/webp": ".webp",
    }
    return extensions.get(content_type, ".jpg")


def _detect_content_type_from_magic(file_header: bytes) -> str | None:
    if file_header.startswith(JPEG_SIGNATURE):
        return "image/jpeg"
    if file_header.startswith(PNG_SIGNATURE):
        return "image/png"
    if file_header.startswith(GIF_SIGNATURE):
        return "image/gif"
    if (
        file_header.startswith(WEBP_RIFF_SIGNATURE)
        and len(file_header) >= 12
        and file_header[8:12] == WEBP_FORMAT_SIGNATURE
    ):
        return "image/webp"
    return None
