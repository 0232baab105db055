"""
Domain models for image processing jobs.

A Job tracks one uploaded file through one operation, from acceptance to a
terminal state. The output fields (processed size, artifact reference,
download token, expiry) only ever appear together, on completed jobs.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class OperationType(str, Enum):
    """
    Closed set of image operations.

    The value doubles as the path segment of ``POST /jobs/{operation}``.
    """

    COMPRESS = "compress"
    RESIZE = "resize"
    CROP = "crop"
    CONVERT = "convert"

    @property
    def download_prefix(self) -> str:
        """Prefix for the synthesized download file name."""
        return _DOWNLOAD_PREFIXES[self]


_DOWNLOAD_PREFIXES = {
    OperationType.COMPRESS: "compressed",
    OperationType.RESIZE: "resized",
    OperationType.CROP: "cropped",
    OperationType.CONVERT: "converted",
}


class JobStatus(str, Enum):
    """
    Job status values.

    Jobs are created in PROCESSING and move exactly once to a terminal
    status.
    """

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


OUTPUT_FIELDS = ("processed_size", "compression_ratio", "artifact_ref", "download_token", "expires_at")
REQUIRED_ON_COMPLETION = ("processed_size", "artifact_ref", "download_token", "expires_at")


class Job(BaseModel):
    """
    Domain model for a processing job.
    """

    id: int = Field(..., description="Store-assigned identifier")
    owner_id: Optional[str] = Field(None, description="Owning user, None for anonymous uploads")
    operation: OperationType
    file_name: str
    original_size: int
    processed_size: Optional[int] = None
    compression_ratio: Optional[float] = Field(
        None, description="(original - processed) / original"
    )
    status: JobStatus = JobStatus.PROCESSING
    artifact_ref: Optional[str] = Field(None, description="Opaque artifact store reference")
    download_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    processing_time_ms: Optional[int] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def download_url(self) -> str | None:
        if not self.download_token:
            return None
        return f"/download/{self.download_token}/{self.id}"

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def is_consistent(self) -> bool:
        """Check the output-field invariants for this job's status."""
        present = [getattr(self, name) is not None for name in REQUIRED_ON_COMPLETION]
        if (self.download_token is None) != (self.artifact_ref is None):
            return False
        if self.status is JobStatus.COMPLETED:
            return all(present)
        return not any(getattr(self, name) is not None for name in OUTPUT_FIELDS)

    @classmethod
    def from_db_row(cls, row: tuple) -> "Job":
        """Construct Job from a row selected with ``JOB_COLUMNS``."""
        return cls(
            id=row[0],
            owner_id=row[1],
            operation=row[2],
            file_name=row[3],
            original_size=row[4],
            processed_size=row[5],
            compression_ratio=row[6],
            status=row[7],
            artifact_ref=row[8],
            download_token=row[9],
            expires_at=row[10],
            processing_time_ms=row[11],
            error=row[12],
            created_at=row[13],
        )


JOB_COLUMNS = (
    "id, owner_id, operation, file_name, original_size, processed_size, "
    "compression_ratio, status, artifact_ref, download_token, expires_at, "
    "processing_time_ms, error, created_at"
)


class JobUpdate(BaseModel):
    """
    Partial update applied to a job in a single statement.

    Validation keeps the invariants: a completion carries every output
    field, a failure carries none, and output fields are never written
    without the completion that goes with them.
    """

    status: Optional[JobStatus] = None
    processed_size: Optional[int] = None
    compression_ratio: Optional[float] = None
    artifact_ref: Optional[str] = None
    download_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    processing_time_ms: Optional[int] = None
    error: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_output_fields(self) -> "JobUpdate":
        if self.status is JobStatus.COMPLETED:
            missing = [name for name in REQUIRED_ON_COMPLETION if getattr(self, name) is None]
            if missing:
                raise ValueError(f"completed update is missing {', '.join(missing)}")
            if self.error is not None:
                raise ValueError("completed update cannot carry an error")
        else:
            present = [name for name in OUTPUT_FIELDS if getattr(self, name) is not None]
            if present:
                raise ValueError(f"output fields require status=completed: {', '.join(present)}")
        if self.status is JobStatus.PROCESSING:
            raise ValueError("jobs cannot be moved back to processing")
        return self

    @classmethod
    def completed(
        cls,
        *,
        original_size: int,
        processed_size: int,
        artifact_ref: str,
        download_token: str,
        expires_at: datetime,
        processing_time_ms: int | None = None,
    ) -> "JobUpdate":
        ratio = (original_size - processed_size) / original_size if original_size else 0.0
        return cls(
            status=JobStatus.COMPLETED,
            processed_size=processed_size,
            compression_ratio=ratio,
            artifact_ref=artifact_ref,
            download_token=download_token,
            expires_at=expires_at,
            processing_time_ms=processing_time_ms,
        )

    @classmethod
    def failed(cls, error: str, processing_time_ms: int | None = None) -> "JobUpdate":
        return cls(status=JobStatus.FAILED, error=error, processing_time_ms=processing_time_ms)
