"""
PostgresJobStore: durable record of image processing jobs.

This service handles:
- Creating jobs in the processing state
- Atomic terminal transitions (completed with every output field, or failed)
- Lookups by id and by owner
- Listing expired jobs for the cleanup sweep
"""

from __future__ import annotations

from datetime import datetime

from loguru import logger

from pixdrop_core.domain.exceptions import InvalidJobTransition, JobNotFound
from pixdrop_core.infrastructure.postgres import get_db_connection
from pixdrop_core.jobs import Job, JobStatus, JobUpdate, OperationType
from pixdrop_core.jobs.models import JOB_COLUMNS


class PostgresJobStore:
    """
    Job store backed by the ``image_jobs`` table.

    Each write is one statement, so readers never observe a completed job
    with missing output fields. Terminal transitions only match rows that
    are still processing; PostgreSQL's row locking serializes concurrent
    updates to the same job.

    Usage:
        store = PostgresJobStore()
        job = store.create(None, OperationType.COMPRESS, "cat.jpg", 204800)
        store.update(job.id, JobUpdate.failed("decoder error"))
    """

    def create(
        self,
        owner_id: str | None,
        operation: OperationType,
        file_name: str,
        original_size: int,
    ) -> Job:
        """
        Create a new job record in the processing state.

        Args:
            owner_id: Owning user, None for anonymous uploads.
            operation: The requested operation.
            file_name: Original client file name.
            original_size: Size of the uploaded file in bytes.

        Returns:
            Job: The stored job with its assigned id.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                INSERT INTO image_jobs
                (owner_id, operation, file_name, original_size, status, created_at)
                VALUES (%s, %s, %s, %s, %s, NOW())
                RETURNING {JOB_COLUMNS}
                """,
                (
                    owner_id,
                    OperationType(operation).value,
                    file_name,
                    original_size,
                    JobStatus.PROCESSING.value,
                ),
            )
            row = cursor.fetchone()
            conn.commit()

        job = Job.from_db_row(row)
        logger.info(f"Created job {job.id} ({job.operation.value}) for {file_name}")
        return job

    def update(self, job_id: int, changes: JobUpdate) -> Job:
        """
        Apply a partial update in a single statement.

        Args:
            job_id: The job id.
            changes: Validated update (see JobUpdate for the invariants).

        Returns:
            Job: The updated job.

        Raises:
            JobNotFound: If no job has this id.
            InvalidJobTransition: If the job already reached a terminal state.
        """
        guard = ""
        if changes.status is not None:
            guard = " AND status = 'processing'"

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                UPDATE image_jobs
                SET status = COALESCE(%s, status),
                    processed_size = COALESCE(%s, processed_size),
                    compression_ratio = COALESCE(%s, compression_ratio),
                    artifact_ref = COALESCE(%s, artifact_ref),
                    download_token = COALESCE(%s, download_token),
                    expires_at = COALESCE(%s, expires_at),
                    processing_time_ms = COALESCE(%s, processing_time_ms),
                    error = COALESCE(%s, error)
                WHERE id = %s{guard}
                RETURNING {JOB_COLUMNS}
                """,
                (
                    changes.status.value if changes.status else None,
                    changes.processed_size,
                    changes.compression_ratio,
                    changes.artifact_ref,
                    changes.download_token,
                    changes.expires_at,
                    changes.processing_time_ms,
                    changes.error,
                    job_id,
                ),
            )
            row = cursor.fetchone()
            conn.commit()

        if row is None:
            current = self.get(job_id)
            if current is None:
                raise JobNotFound(f"Job {job_id} not found")
            raise InvalidJobTransition(
                f"Job {job_id} is already {current.status.value}",
                message_debug=f"rejected transition to {changes.status}",
            )

        job = Job.from_db_row(row)
        logger.debug(f"Updated job {job_id}: status={job.status.value}")
        return job

    def get(self, job_id: int) -> Job | None:
        """
        Get job details by id.

        Args:
            job_id: The job id.

        Returns:
            Job if found, None otherwise.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {JOB_COLUMNS} FROM image_jobs WHERE id = %s",
                (job_id,),
            )
            row = cursor.fetchone()

        return Job.from_db_row(row) if row else None

    def list_by_owner(self, owner_id: str, limit: int = 50) -> list[Job]:
        """
        List a user's jobs, most recent first.

        Args:
            owner_id: The owning user id.
            limit: Max results to return.

        Returns:
            List of Job models.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {JOB_COLUMNS}
                FROM image_jobs
                WHERE owner_id = %s
                ORDER BY created_at DESC, id DESC
                LIMIT %s
                """,
                (owner_id, limit),
            )
            rows = cursor.fetchall()

        return [Job.from_db_row(row) for row in rows]

    def list_expired(self, cutoff: datetime, limit: int = 500, after_id: int = 0) -> list[Job]:
        """
        List unpurged completed jobs that expired before ``cutoff``.

        Args:
            cutoff: Expiry threshold.
            limit: Max results to return.
            after_id: Only jobs with a larger id (keyset paging).

        Returns:
            List of Job models, ordered by id.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {JOB_COLUMNS}
                FROM image_jobs
                WHERE status = 'completed'
                  AND expires_at < %s
                  AND purged_at IS NULL
                  AND id > %s
                ORDER BY id ASC
                LIMIT %s
                """,
                (cutoff, after_id, limit),
            )
            rows = cursor.fetchall()

        return [Job.from_db_row(row) for row in rows]

    def mark_purged(self, job_id: int) -> None:
        """
        Record that a job's artifact was physically removed.

        The job keeps its completed status and output fields; downloads are
        already refused because the job is past its expiry.

        Args:
            job_id: The job id.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE image_jobs SET purged_at = NOW() WHERE id = %s",
                (job_id,),
            )
            conn.commit()

        logger.debug(f"Marked job {job_id} artifact as purged")
