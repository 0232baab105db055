"""
Artifact store backends for processed outputs.

This module provides:
- MinIOArtifactStore: Object storage backend for multi-host deployments
- get_artifact_store: Factory returning the configured backend

The backend is selected with the ARTIFACT_BACKEND setting ("local" or
"minio").
"""

from __future__ import annotations

import io
from typing import Iterator

from loguru import logger
from minio.error import S3Error

from pixdrop_core.config import settings
from pixdrop_core.infrastructure.minio import ensure_bucket, get_minio_client

from ..protocols import ArtifactStore
from .local_artifact_store import LocalArtifactStore, build_artifact_name


class MinIOArtifactStore:
    """
    MinIO-based artifact storage.

    References are object names inside a single bucket; they carry no
    bucket prefix so records stay valid if the bucket is renamed.

    Usage:
        store = MinIOArtifactStore()
        ref = store.write(42, b"...", ".png")
        for chunk in store.iter_chunks(ref):
            ...
    """

    def __init__(self, client=None, bucket: str | None = None):
        """
        Initialize the MinIO artifact store.

        Args:
            client: Optional Minio client (defaults to the shared client).
            bucket: Bucket name (defaults to settings.MINIO_BUCKET_ARTIFACTS).
        """
        self._client = client or get_minio_client()
        self.bucket = bucket or settings.MINIO_BUCKET_ARTIFACTS
        ensure_bucket(self._client, self.bucket)

    def write(self, job_id: int, content: bytes, extension: str) -> str:
        reference = build_artifact_name(job_id, extension)

        self._client.put_object(
            bucket_name=self.bucket,
            object_name=reference,
            data=io.BytesIO(content),
            length=len(content),
            content_type="application/octet-stream",
        )

        logger.info(f"[job {job_id}] Stored artifact {self.bucket}/{reference} ({len(content)} bytes)")
        return reference

    def exists(self, reference: str) -> bool:
        try:
            self._client.stat_object(self.bucket, reference)
        except S3Error as e:
            if e.code in ("NoSuchKey", "NoSuchObject", "NoSuchBucket"):
                return False
            raise
        return True

    def size(self, reference: str) -> int:
        return self._client.stat_object(self.bucket, reference).size

    def iter_chunks(self, reference: str, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        response = self._client.get_object(self.bucket, reference)
        try:
            yield from response.stream(chunk_size)
        finally:
            response.close()
            response.release_conn()

    def read(self, reference: str) -> bytes:
        response = self._client.get_object(self.bucket, reference)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def delete(self, reference: str) -> None:
        logger.info(f"Deleting artifact {self.bucket}/{reference}")
        self._client.remove_object(self.bucket, reference)


def get_artifact_store() -> ArtifactStore:
    """
    Factory function to get the configured artifact store.

    Returns:
        ArtifactStore: LocalArtifactStore or MinIOArtifactStore.
    """
    backend = settings.ARTIFACT_BACKEND.lower()

    if backend == "minio":
        logger.info("Using MinIOArtifactStore backend")
        return MinIOArtifactStore()
    if backend != "local":
        raise ValueError(f"Unknown ARTIFACT_BACKEND: {settings.ARTIFACT_BACKEND!r}")

    logger.info("Using LocalArtifactStore backend")
    return LocalArtifactStore()
