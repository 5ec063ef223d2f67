"""
S3 storage service for generated artifacts.

Handles uploads and presigned URL generation. Storage is optional: when no
bucket is configured the job engine keeps artifacts on local disk only.
"""

import asyncio
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from config import settings
from pipeline.error_handler import StorageError
from pipeline.models import StoredArtifact

logger = structlog.get_logger()


class ArtifactStore(ABC):
    """
    Durable blob storage: store a file under a key, return a retrievable URL.
    """

    @abstractmethod
    async def upload(self, local_path: str, namespace: str) -> StoredArtifact:
        """
        Upload a local file and mint a signed URL for it.

        Raises:
            StorageError: If the upload or signing fails
        """

    @abstractmethod
    async def get_signed_url(self, key: str, ttl_seconds: Optional[int] = None) -> str:
        """
        Mint a fresh signed URL for an existing key.

        Raises:
            StorageError: If signing fails
        """


class S3ArtifactStore(ArtifactStore):
    """
    S3-backed artifact store.

    boto3 is blocking, so every call runs in the default thread pool executor.

    Example:
        >>> store = S3ArtifactStore(bucket="videogen-artifacts")
        >>> stored = await store.upload("uploads/videos/job_1.mp4", "project-42")
        >>> stored.key
        'videos/project-42/job_1.mp4'
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        s3_client=None,
        url_expiry: Optional[int] = None
    ):
        """Initialize S3 client."""
        self.bucket_name = bucket or settings.STORAGE_BUCKET
        self.region = region or settings.AWS_REGION
        self.url_expiry = url_expiry or settings.SIGNED_URL_EXPIRY
        self.s3_client = s3_client or boto3.client(
            's3',
            region_name=self.region,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None
        )

        logger.info(
            "s3_storage_initialized",
            bucket=self.bucket_name,
            region=self.region
        )

    def upload_file_from_path(self, file_path: str, s3_key: str) -> str:
        """
        Upload file from filesystem path to S3.

        Args:
            file_path: Path to local file
            s3_key: S3 object key

        Returns:
            S3 key of uploaded file

        Raises:
            StorageError: If the file is missing or the upload fails
        """
        if not Path(file_path).exists():
            raise StorageError(f"File not found: {file_path}", {"file_path": file_path})

        content_type = mimetypes.guess_type(file_path)[0] or "application/octet-stream"

        try:
            self.s3_client.upload_file(
                file_path,
                self.bucket_name,
                s3_key,
                ExtraArgs={
                    'ContentType': content_type,
                    'CacheControl': 'public, max-age=31536000',
                }
            )
        except (ClientError, BotoCoreError, OSError) as e:
            logger.error(
                "s3_upload_failed",
                s3_key=s3_key,
                file_path=file_path,
                error=str(e)
            )
            raise StorageError(f"Failed to upload file to S3: {e}", {"s3_key": s3_key})

        logger.info(
            "s3_file_uploaded",
            bucket=self.bucket_name,
            s3_key=s3_key,
            content_type=content_type
        )
        return s3_key

    def generate_presigned_url(self, s3_key: str, expiry: Optional[int] = None) -> str:
        """
        Generate presigned URL for S3 object.

        Args:
            s3_key: S3 object key
            expiry: URL expiration in seconds (default: 24 hours)

        Returns:
            Presigned URL string

        Raises:
            StorageError: If URL generation fails
        """
        if expiry is None:
            expiry = self.url_expiry

        try:
            url = self.s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket_name,
                    'Key': validate_s3_key(s3_key)
                },
                ExpiresIn=expiry
            )
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.error(
                "s3_presigned_url_failed",
                s3_key=s3_key,
                error=str(e)
            )
            raise StorageError(f"Failed to generate signed URL: {e}", {"s3_key": s3_key})

        logger.debug(
            "s3_presigned_url_generated",
            s3_key=s3_key,
            expiry_seconds=expiry
        )
        return url

    async def upload(self, local_path: str, namespace: str) -> StoredArtifact:
        s3_key = generate_artifact_key(namespace, Path(local_path).name)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.upload_file_from_path, local_path, s3_key)
        signed_url = await loop.run_in_executor(None, self.generate_presigned_url, s3_key, self.url_expiry)

        return StoredArtifact(key=s3_key, signed_url=signed_url)

    async def get_signed_url(self, key: str, ttl_seconds: Optional[int] = None) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.generate_presigned_url, key, ttl_seconds)


def generate_artifact_key(namespace: Optional[str], filename: str) -> str:
    """
    Generate standardized S3 key for a generated artifact.

    Examples:
        >>> generate_artifact_key("project-42", "job_1.mp4")
        'videos/project-42/job_1.mp4'
        >>> generate_artifact_key(None, "job_1.mp4")
        'videos/default/job_1.mp4'
    """
    namespace = (namespace or "default").strip("/") or "default"
    return f"videos/{namespace}/{filename}"


def validate_s3_key(s3_key: Optional[str], field_name: str = "S3 key") -> Optional[str]:
    """
    Validate that an S3 key is not a URL.

    Keys look like "videos/{namespace}/{file}", never "https://..." or
    "s3://...", so a signed URL is never stored in place of its key.

    Args:
        s3_key: S3 key to validate (can be None)
        field_name: Name of the field for error messages

    Returns:
        The validated S3 key (or None if input was None)

    Raises:
        ValueError: If s3_key appears to be a URL instead of a key
    """
    if s3_key is None:
        return None

    s3_key = s3_key.strip()

    if s3_key.startswith(("http://", "https://", "s3://")):
        raise ValueError(
            f"{field_name} must be an S3 key (e.g., 'videos/default/job.mp4'), "
            f"not a URL. Received: {s3_key[:50]}..."
        )

    if "?" in s3_key and ("X-Amz-" in s3_key or "AWSAccessKeyId" in s3_key):
        raise ValueError(
            f"{field_name} must be an S3 key, not a presigned URL. "
            f"Presigned URLs contain query parameters and expire. Received: {s3_key[:50]}..."
        )

    return s3_key


def create_artifact_store() -> Optional[ArtifactStore]:
    """
    Build the configured artifact store, or None when no bucket is set.
    """
    if not settings.storage_enabled:
        logger.warning("artifact_store_disabled", reason="STORAGE_BUCKET not set")
        return None
    return S3ArtifactStore()
