"""
Image job domain.

Exports:
    - OperationType: Enum of image operations (compress, resize, crop, convert)
    - JobStatus: Enum of job statuses (processing, completed, failed)
    - Job: Domain model for a processing job
    - JobUpdate: Validated partial update for a job
"""

from pixdrop_core.jobs.models import (
    Job,
    JobStatus,
    JobUpdate,
    OperationType,
)

__all__ = [
    "Job",
    "JobStatus",
    "JobUpdate",
    "OperationType",
]
