"""Object storage service for attachments, theme covers and QR images."""

import logging
from datetime import datetime, timezone
from io import BytesIO
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from quadriparlanti.config import get_settings
from quadriparlanti.db.models import FileType
from quadriparlanti.schemas.schemas import IMAGE_MIME_TYPES, PDF_MIME_TYPES
from quadriparlanti.utils.text import sanitize_file_name

settings = get_settings()
logger = logging.getLogger(__name__)


class StorageValidationError(ValueError):
    """Raised when a file does not meet the upload rules."""


class StorageService:
    """Service for managing S3-compatible object storage (Supabase Storage, MinIO)."""

    def __init__(self):
        self._client = None
        self._ensured_buckets: set[str] = set()

    @property
    def client(self):
        """Lazy initialization of S3 client."""
        if self._client is None:
            endpoint_url = f"{'https' if settings.storage_use_ssl else 'http'}://{settings.storage_endpoint}"
            self._client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=settings.storage_access_key,
                aws_secret_access_key=settings.storage_secret_key,
                region_name=settings.storage_region,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def _ensure_bucket(self, bucket: str):
        """Create bucket if it doesn't exist."""
        if bucket in self._ensured_buckets:
            return
        try:
            self.client.head_bucket(Bucket=bucket)
        except ClientError:
            self.client.create_bucket(Bucket=bucket)
        self._ensured_buckets.add(bucket)

    # ---- validation and paths ----

    def get_file_type(self, mime_type: str) -> Optional[FileType]:
        """Map a MIME type onto the attachment file type."""
        mime_type = (mime_type or "").lower()
        if mime_type in IMAGE_MIME_TYPES:
            return FileType.IMAGE
        if mime_type in PDF_MIME_TYPES:
            return FileType.PDF
        return None

    def validate_attachment(self, mime_type: str, size_bytes: int) -> FileType:
        """
        Check size and type of an attachment.

        Returns the file type, raises StorageValidationError otherwise.
        """
        if size_bytes > settings.max_upload_size_bytes:
            max_mb = settings.max_upload_size_bytes // (1024 * 1024)
            raise StorageValidationError(f"File exceeds the maximum size of {max_mb}MB")
        file_type = self.get_file_type(mime_type)
        if file_type is None:
            raise StorageValidationError("Only PDF and JPEG, PNG or WEBP images are allowed")
        return file_type

    def generate_storage_path(
        self,
        user_id: str,
        file_name: str,
        work_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """``{user_id}/{work_id|draft}/{timestamp_ms}_{sanitised name}``."""
        now = now or datetime.now(timezone.utc)
        timestamp = int(now.timestamp() * 1000)
        return f"{user_id}/{work_id or 'draft'}/{timestamp}_{sanitize_file_name(file_name)}"

    def public_url(self, bucket: str, path: str) -> str:
        return f"{settings.storage_public_url.rstrip('/')}/{bucket}/{path}"

    # ---- object operations ----

    def generate_upload_url(
        self,
        bucket: str,
        path: str,
        content_type: str,
        expires_in: Optional[int] = None,
    ) -> dict:
        """
        Generate a presigned URL for uploading a file directly to storage.

        Returns:
            dict with 'upload_url', 'storage_path', 'expires_in', 'content_type'
            and 'public_url'
        """
        expires_in = expires_in or settings.upload_url_expires_in
        self._ensure_bucket(bucket)

        url = self.client.generate_presigned_url(
            "put_object",
            Params={
                "Bucket": bucket,
                "Key": path,
                "ContentType": content_type,
            },
            ExpiresIn=expires_in,
        )

        return {
            "upload_url": url,
            "storage_path": path,
            "expires_in": expires_in,
            "content_type": content_type,
            "public_url": self.public_url(bucket, path),
        }

    def upload_bytes(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        """Upload raw bytes, replacing any existing object. Returns the path."""
        self._ensure_bucket(bucket)
        self.client.upload_fileobj(
            BytesIO(content),
            bucket,
            path,
            ExtraArgs={"ContentType": content_type},
        )
        return path

    def delete_objects(self, bucket: str, paths: list[str]):
        """Delete objects; missing keys are ignored by S3."""
        if not paths:
            return
        self.client.delete_objects(
            Bucket=bucket,
            Delete={"Objects": [{"Key": p} for p in paths]},
        )

    def health_check(self) -> bool:
        """Check if storage is accessible."""
        try:
            self.client.head_bucket(Bucket=settings.attachments_bucket)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Storage health check failed: {e}")
            return False


# Singleton instance
storage_service = StorageService()
