"""
Expiry sweep for processed artifacts.

Downloads are refused as soon as a job expires; this sweep reclaims the
space afterwards. It deletes expired artifacts, marks their jobs purged
and removes staged uploads left behind by interrupted requests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from loguru import logger

from pixdrop_core.config import settings

from ..protocols import ArtifactStore, JobStore
from .upload_area import UploadArea


def sweep_expired_artifacts(
    job_store: JobStore,
    artifact_store: ArtifactStore,
    upload_area: Optional[UploadArea] = None,
    grace_minutes: Optional[int] = None,
    stale_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
    batch_size: int = 500,
) -> dict:
    """
    Delete artifacts of jobs that expired more than ``grace_minutes`` ago.

    Args:
        job_store: Job store to scan.
        artifact_store: Store holding the artifacts.
        upload_area: Optional staging area to sweep for stale uploads.
        grace_minutes: Extra minutes past expiry (defaults to SWEEP_GRACE_MINUTES).
        stale_minutes: Age of orphaned uploads (defaults to UPLOAD_STALE_MINUTES).
        now: Current time (for testing).
        batch_size: Max artifacts deleted per run. Jobs whose artifact cannot
            be deleted stay unpurged and are paged past.

    Returns:
        dict: Summary of the sweep.
    """
    grace = grace_minutes if grace_minutes is not None else settings.SWEEP_GRACE_MINUTES
    stale = stale_minutes if stale_minutes is not None else settings.UPLOAD_STALE_MINUTES
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=grace)

    deleted = 0
    failed = 0
    last_id = 0

    while deleted < batch_size:
        page = job_store.list_expired(cutoff, limit=batch_size - deleted, after_id=last_id)
        if not page:
            break

        for job in page:
            last_id = job.id
            try:
                if artifact_store.exists(job.artifact_ref):
                    artifact_store.delete(job.artifact_ref)
                else:
                    logger.warning(f"[job {job.id}] Expired artifact {job.artifact_ref} already gone")
            except Exception as e:
                failed += 1
                logger.warning(f"[job {job.id}] Failed to delete artifact {job.artifact_ref}: {e}")
                continue

            job_store.mark_purged(job.id)
            deleted += 1

    stale_uploads = upload_area.sweep_stale(stale * 60) if upload_area is not None else 0

    logger.info(
        f"Sweep complete: deleted={deleted}, failed={failed}, "
        f"stale_uploads={stale_uploads}, cutoff={cutoff.isoformat()}"
    )
    return {
        "deleted": deleted,
        "failed": failed,
        "stale_uploads": stale_uploads,
        "cutoff": cutoff.isoformat(),
    }
