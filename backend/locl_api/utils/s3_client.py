"""
AWS S3 client for image uploads and public URLs
"""

import base64
import binascii
import re
import uuid
from typing import Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import RetryError

from ..config import settings
from ..core.exceptions import StorageError, ValidationError
from ..core.logging import get_logger
from ..core.outcome import Outcome
from .retry import RetryPolicy, fixed_backoff

logger = get_logger(__name__)

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}

_DATA_URL = re.compile(r"^data:image/(\w+);base64,(.*)$", re.DOTALL)


def detect_image_type(filename: Optional[str] = None, content_type: Optional[str] = None) -> Tuple[str, str]:
    """
    Work out (extension, content type) for an upload.

    The declared content type wins over the filename extension; jpeg is
    normalised to jpg. Raises ValidationError for anything that is not an
    allowed image type.
    """
    ext = None
    if content_type and content_type.startswith("image/"):
        ext = content_type.split("/", 1)[1].split(";")[0].strip().lower()
    elif filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()

    if ext == "jpeg":
        ext = "jpg"
    if not ext or ext not in CONTENT_TYPES or ext not in settings.get_allowed_image_extensions():
        raise ValidationError(f"Unsupported file extension: {ext or 'unknown'}")
    return ext, CONTENT_TYPES[ext]


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """Split a base64 data URL into raw bytes and its image content type"""
    match = _DATA_URL.match(data_url.strip())
    if not match:
        raise ValidationError("Invalid data URL format")
    try:
        content = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid data URL format")
    return content, f"image/{match.group(1).lower()}"


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.upload_max_attempts,
        backoff=fixed_backoff(settings.upload_retry_delay_seconds),
    )


class S3Client:
    def __init__(self, client=None, retry_policy: Optional[RetryPolicy] = None):
        """Initialize S3 client with configuration from settings"""
        self.s3_client = client or boto3.client(
            's3',
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region
        )
        self.bucket_name = settings.s3_bucket_name
        self.region = settings.aws_region
        self.base_url = (settings.s3_base_url or f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com").rstrip("/")
        self.retry_policy = retry_policy or default_retry_policy()

    def upload_bytes(
        self,
        content: bytes,
        bucket: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        prefix: str = "",
    ) -> str:
        """
        Upload raw image bytes under a bucket folder, retrying per the policy.

        Args:
            content: file body
            bucket: logical bucket ("avatars" or "listings"), used as key prefix
            filename: original filename, used for type detection
            content_type: declared content type, preferred over the filename
            prefix: optional filename prefix (e.g. the owner id)

        Returns:
            str: public URL of the uploaded object
        """
        if not content:
            raise ValidationError("No image data provided")
        if len(content) > settings.max_upload_size:
            raise ValidationError(
                f"File size {len(content)} exceeds maximum allowed size {settings.max_upload_size}"
            )

        ext, detected_type = detect_image_type(filename, content_type)
        key = f"{bucket}/{prefix + '-' if prefix else ''}{uuid.uuid4().hex}.{ext}"

        try:
            self.retry_policy.call(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=detected_type,
                ContentDisposition="inline",
            )
        except (ClientError, BotoCoreError, RetryError, ConnectionError, TimeoutError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageError("Failed to upload file to storage") from e

        url = self.public_url(key)
        logger.debug(f"Uploaded {key} -> {url}")
        return url

    def upload_with_fallback(self, content: bytes, bucket: str, fallback_url: str, **kwargs) -> Outcome[str]:
        """Upload, or hand back fallback_url once the retry policy is exhausted"""
        try:
            return Outcome.succeeded(self.upload_bytes(content, bucket, **kwargs))
        except (StorageError, ValidationError) as e:
            logger.warning(f"Upload to {bucket} failed, using fallback image: {e}")
            return Outcome.fallback(fallback_url, error=e, detail=str(e))

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key.lstrip('/')}"

    def delete_file(self, url: str) -> bool:
        """
        Delete an object given its public URL (or bare key)

        Returns:
            bool: True if successful, False otherwise
        """
        key = url[len(self.base_url) + 1:] if url.startswith(self.base_url + "/") else url.lstrip("/")
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 delete error: {e}")
            return False


# Global S3 client instance (lazy initialization)
_s3_client_instance = None


def get_s3_client() -> S3Client:
    """Get or create S3 client instance (lazy initialization)"""
    global _s3_client_instance
    if _s3_client_instance is None:
        _s3_client_instance = S3Client()
    return _s3_client_instance
