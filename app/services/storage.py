import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path

import boto3
from botocore.config import Config

from app.config import settings
from app.errors import validation_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    """An upload already read off the request."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class StorageService:
    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not StorageService.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def generate_storage_key(document_id: str, file_name: str) -> str:
        unique = uuid.uuid4().hex[:12]
        safe_name = Path(file_name).name.replace(" ", "_") or "file"
        return f"documents/{document_id}/{unique}/{safe_name}"

    @staticmethod
    def save(document_id, upload: UploadedFile) -> str:
        if not upload.content:
            raise validation_error("Uploaded file is empty")
        if upload.size > settings.upload_max_size_bytes:
            raise validation_error(
                f"File too large. Maximum size: {settings.upload_max_size_bytes // 1024 // 1024}MB"
            )
        key = StorageService.generate_storage_key(str(document_id), upload.filename)
        if StorageService.is_configured():
            StorageService._get_client().put_object(
                Bucket=settings.s3_bucket_name,
                Key=key,
                Body=upload.content,
                ContentType=upload.content_type,
            )
        else:
            path = Path(settings.upload_dir) / key
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(upload.content)
        logger.info("Stored %d bytes at %s", upload.size, key)
        return key

    @staticmethod
    def delete(storage_key: str | None) -> None:
        if not storage_key:
            return
        if StorageService.is_configured():
            StorageService._get_client().delete_object(
                Bucket=settings.s3_bucket_name, Key=storage_key
            )
            return
        path = Path(settings.upload_dir) / storage_key
        if path.exists():
            os.remove(path)

    @staticmethod
    def generate_download_url(storage_key: str) -> str:
        if not StorageService.is_configured():
            return f"{settings.upload_url_prefix}/{storage_key}"
        client = StorageService._get_client()
        url: str = client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": settings.s3_bucket_name,
                "Key": storage_key,
            },
            ExpiresIn=settings.s3_presigned_url_expiry,
        )
        return url


storage = StorageService()
