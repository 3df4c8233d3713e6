"""
Storage dependency for routes that upload images
"""

from typing import Optional

from .s3_client import S3Client, get_s3_client
from ..core.exceptions import StorageError
from ..core.logging import get_logger
from ..config import settings

logger = get_logger(__name__)


def get_file_storage() -> S3Client:
    """
    Get the S3 storage backend

    Returns:
        S3Client instance
    """
    aws_key = settings.aws_access_key_id or ""
    s3_bucket = settings.s3_bucket_name or ""
    if not aws_key.strip() or not s3_bucket.strip():
        raise StorageError("S3 credentials are missing. Please configure AWS S3 settings in .env file.")
    return get_s3_client()


def get_optional_file_storage() -> Optional[S3Client]:
    """Like get_file_storage, but None when S3 is not configured (callers fall back)"""
    try:
        return get_file_storage()
    except StorageError as e:
        logger.warning(f"File storage unavailable: {e.message}")
        return None
