"""
DownloadGateway: token-gated access to processed artifacts.

Checks run in a fixed order so the outcome never depends on which check
is cheaper:
1. Job exists and is completed, else 404
2. Job not expired, else 410
3. Token matches (constant time), else 403
4. Artifact bytes present, else 404 (logged as an integrity anomaly)
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable, Iterator, Optional

from loguru import logger

from app.jobs.protocols import ArtifactStore, JobStore
from app.jobs.services.local_artifact_store import artifact_extension
from app.jobs.services.processing import Clock, utc_now
from pixdrop_core.domain.exceptions import (
    ArtifactExpired,
    ArtifactMissing,
    InvalidDownloadToken,
    JobNotReady,
)
from pixdrop_core.jobs import Job, JobStatus


@dataclass(frozen=True)
class ResolvedDownload:
    """A download that passed every check."""

    job: Job
    file_name: str
    size: int
    chunks: Callable[[], Iterator[bytes]]


def download_file_name(job: Job) -> str:
    """
    ``<prefix>_<original name>``, with the artifact's extension when the
    output format changed.
    """
    name = PurePath(job.file_name.replace("\\", "/")).name or "image"
    artifact_suffix = PurePath(job.artifact_ref or "").suffix
    if artifact_suffix and artifact_extension(name) != artifact_suffix:
        stem = PurePath(name).stem if PurePath(name).suffix else name
        name = f"{stem}{artifact_suffix}"
    return f"{job.operation.download_prefix}_{name}"


class DownloadGateway:
    """
    Resolves ``(token, job id)`` pairs to artifact bytes.

    The gateway never mutates jobs or artifacts; repeated downloads return
    identical bytes until expiry.

    Usage:
        gateway = DownloadGateway(job_store, artifact_store)
        download = gateway.resolve(token, "42")
    """

    def __init__(
        self,
        job_store: JobStore,
        artifact_store: ArtifactStore,
        clock: Optional[Clock] = None,
    ):
        self.job_store = job_store
        self.artifact_store = artifact_store
        self.clock = clock or utc_now

    def resolve(self, token: str, job_id: str) -> ResolvedDownload:
        """
        Check a download request.

        Args:
            token: Token from the download URL.
            job_id: Job id from the download URL (unparsed).

        Returns:
            ResolvedDownload: Name, size and byte stream of the artifact.

        Raises:
            JobNotReady: Unknown job, malformed id or job not completed.
            ArtifactExpired: Past the job's expiry.
            InvalidDownloadToken: Token does not match.
            ArtifactMissing: Completed job whose artifact is gone.
        """
        try:
            numeric_id = int(job_id)
        except (TypeError, ValueError):
            raise JobNotReady("File not found or not ready", message_debug=f"job_id={job_id!r}")

        job = self.job_store.get(numeric_id)
        if job is None or job.status is not JobStatus.COMPLETED:
            raise JobNotReady("File not found or not ready")

        if job.is_expired(self.clock()):
            raise ArtifactExpired("File has expired")

        if not secrets.compare_digest(token.encode(), (job.download_token or "").encode()):
            logger.warning(f"[job {job.id}] Download refused: token mismatch")
            raise InvalidDownloadToken("Invalid download token")

        reference = job.artifact_ref
        if not self.artifact_store.exists(reference):
            logger.error(f"[job {job.id}] Integrity anomaly: completed job has no artifact at {reference}")
            raise ArtifactMissing("Processed file not found", message_debug=f"artifact_ref={reference}")

        size = self.artifact_store.size(reference)
        logger.info(f"[job {job.id}] Serving download ({size} bytes)")
        return ResolvedDownload(
            job=job,
            file_name=download_file_name(job),
            size=size,
            chunks=lambda: self.artifact_store.iter_chunks(reference),
        )
