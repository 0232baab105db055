"""
Pydantic schemas for the jobs API.

Responses use camelCase keys, matching the web client.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pixdrop_core.domain.usage import TOOL_NAME_PATTERN
from pixdrop_core.jobs import Job, JobStatus, OperationType


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobSummary(_CamelModel):
    """Client view of a job."""

    id: int
    file_name: str
    original_size: int
    processed_size: Optional[int] = None
    compression_ratio: Optional[float] = None
    status: JobStatus
    download_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    operation: OperationType
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job, include_download: bool = True) -> "JobSummary":
        """
        Build the client view of ``job``.

        Args:
            job: The stored job.
            include_download: Whether the caller may see the download URL.
        """
        return cls(
            id=job.id,
            file_name=job.file_name,
            original_size=job.original_size,
            processed_size=job.processed_size,
            compression_ratio=job.compression_ratio,
            status=job.status,
            download_url=job.download_url if include_download else None,
            expires_at=job.expires_at,
            operation=job.operation,
            error=job.error,
        )


class JobListResponse(_CamelModel):
    """Response model for batch submissions and job listings."""

    jobs: list[JobSummary]


class TrackUsageRequest(_CamelModel):
    """A tool opened or used in the browser."""

    tool_name: str = Field(
        ...,
        pattern=TOOL_NAME_PATTERN,
        validation_alias=AliasChoices("toolName", "toolType"),
    )


class TrackUsageResponse(_CamelModel):
    success: bool = True
