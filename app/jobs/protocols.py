"""
Job module protocols.

This module defines the interfaces for the main components of the job
pipeline, allowing different backends (PostgreSQL, filesystem, MinIO,
in-memory fakes) to be used interchangeably.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterator, Protocol, runtime_checkable

from pixdrop_core.domain.usage import UsageEvent
from pixdrop_core.jobs import Job, JobUpdate, OperationType

if TYPE_CHECKING:
    from app.jobs.services.transforms import TransformResult


@runtime_checkable
class JobStore(Protocol):
    """Durable record of processing jobs."""

    def create(
        self,
        owner_id: str | None,
        operation: OperationType,
        file_name: str,
        original_size: int,
    ) -> Job:
        """Create a job in the processing state."""
        ...

    def update(self, job_id: int, changes: JobUpdate) -> Job:
        """Apply a validated partial update atomically and return the new row."""
        ...

    def get(self, job_id: int) -> Job | None:
        """Get a job by id."""
        ...

    def list_by_owner(self, owner_id: str, limit: int = 50) -> list[Job]:
        """List a user's jobs, most recent first."""
        ...

    def list_expired(self, cutoff: datetime, limit: int = 500, after_id: int = 0) -> list[Job]:
        """List unpurged completed jobs expired before ``cutoff`` with ids above ``after_id``."""
        ...

    def mark_purged(self, job_id: int) -> None:
        """Record that the job's artifact was removed by the sweep."""
        ...


@runtime_checkable
class ArtifactStore(Protocol):
    """Storage for processed output bytes."""

    def write(self, job_id: int, content: bytes, extension: str) -> str:
        """Persist bytes and return the opaque reference."""
        ...

    def exists(self, reference: str) -> bool:
        """Check that the bytes behind ``reference`` are present."""
        ...

    def size(self, reference: str) -> int:
        """Byte size of the stored artifact."""
        ...

    def iter_chunks(self, reference: str, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Stream the stored bytes."""
        ...

    def read(self, reference: str) -> bytes:
        """Read the whole artifact."""
        ...

    def delete(self, reference: str) -> None:
        """Remove an artifact (expiry sweep only)."""
        ...


@runtime_checkable
class ImageTransformer(Protocol):
    """Black-box image operation: bytes in, bytes out."""

    def apply(self, content: bytes, settings: Any, aggressive: bool = False) -> "TransformResult":
        """Run the operation on ``content``."""
        ...


@runtime_checkable
class UsageRecorder(Protocol):
    """Append-only log of tool invocations."""

    def record(self, event: UsageEvent) -> None:
        """Record an event; never raises."""
        ...

