"""
MinIO client helpers for the object-storage artifact backend.

The client is built once per process from settings; buckets are created
on first use.
"""

from functools import lru_cache

from loguru import logger
from minio import Minio
from minio.error import S3Error

from pixdrop_core.config import settings


@lru_cache()
def get_minio_client() -> Minio:
    """
    Get the process-wide MinIO client.

    Returns:
        Minio: Client configured from MINIO_* settings.
    """
    client = Minio(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )
    logger.info(f"MinIO client ready for '{settings.MINIO_ENDPOINT}'")
    return client


def ensure_bucket(client: Minio, bucket_name: str) -> None:
    """Create ``bucket_name`` if it does not exist yet."""
    try:
        if not client.bucket_exists(bucket_name):
            client.make_bucket(bucket_name)
            logger.info(f"Created MinIO bucket '{bucket_name}'")
    except S3Error as e:
        logger.warning(f"Could not ensure bucket '{bucket_name}' exists: {e}")
