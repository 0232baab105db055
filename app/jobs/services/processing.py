"""
ProcessingInvoker: runs one operation over a batch of staged uploads.

For each file this service:
- Creates the job in the processing state
- Runs the transformer in a worker thread under a timeout
- Writes the artifact and completes the job in one update
- Marks the job failed on any error, so no job is left processing
- Removes the staged upload whatever the outcome
"""

from __future__ import annotations

import asyncio
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from loguru import logger

from pixdrop_core.config import settings
from pixdrop_core.domain.exceptions import ProcessingFailure
from pixdrop_core.infrastructure.telemetry import get_tracer
from pixdrop_core.jobs import Job, JobStatus, JobUpdate, OperationType
from pixdrop_core.jobs.options import OperationOptions
from pixdrop_core.runtime.context import RequestContext
from pixdrop_core.runtime.errors import ServiceError

from ..protocols import ArtifactStore, ImageTransformer, JobStore
from .transforms import TransformResult, get_transformer, output_extension
from .upload_area import StagedUpload, UploadArea

tracer = get_tracer(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _failure_message(error: Exception) -> str:
    if isinstance(error, ServiceError):
        return error.message_safe
    if isinstance(error, asyncio.TimeoutError):
        return "Processing timed out"
    return "Processing failed"


class ProcessingInvoker:
    """
    Drives jobs from creation to a terminal state.

    The invoker is the only writer of status transitions and output fields.
    Files in a batch are processed one after another; a failure only affects
    its own job.

    Usage:
        invoker = ProcessingInvoker(job_store, artifact_store, upload_area)
        jobs = await invoker.process_batch(ctx, OperationType.COMPRESS, options, staged)
    """

    def __init__(
        self,
        job_store: JobStore,
        artifact_store: ArtifactStore,
        upload_area: UploadArea,
        clock: Optional[Clock] = None,
        ttl: Optional[timedelta] = None,
        timeout: Optional[float] = None,
        transformer_factory: Callable[[OperationType], ImageTransformer] = get_transformer,
    ):
        """
        Args:
            job_store: Durable job records.
            artifact_store: Output storage.
            upload_area: Staging area the uploads came from.
            clock: Returns the current UTC time (defaults to the system clock).
            ttl: Retention window (defaults to ARTIFACT_TTL_HOURS).
            timeout: Per-transform timeout in seconds.
            transformer_factory: Maps an operation to its transformer.
        """
        self.job_store = job_store
        self.artifact_store = artifact_store
        self.upload_area = upload_area
        self.clock = clock or utc_now
        self.ttl = ttl or timedelta(hours=settings.ARTIFACT_TTL_HOURS)
        self.timeout = timeout or settings.TRANSFORM_TIMEOUT_SECONDS
        self.transformer_factory = transformer_factory

    async def process_batch(
        self,
        ctx: RequestContext,
        operation: OperationType,
        options: OperationOptions,
        uploads: list[StagedUpload],
    ) -> list[Job]:
        """
        Process every upload and return the jobs in upload order.

        Every returned job is in a terminal state. Storage outages while
        creating or finishing a job propagate; staged files are still removed.
        """
        transformer = self.transformer_factory(operation)
        logger.info(
            f"[{ctx.request_id}] Processing {len(uploads)} file(s) with {operation.value} "
            f"(user={ctx.user_id or 'anonymous'})"
        )

        jobs: list[Job] = []
        remaining = list(uploads)
        try:
            while remaining:
                upload = remaining.pop(0)
                jobs.append(await self._process_one(ctx, operation, transformer, options, upload))
        finally:
            for upload in remaining:
                self.upload_area.discard(upload)

        completed = sum(1 for job in jobs if job.status is JobStatus.COMPLETED)
        logger.info(f"[{ctx.request_id}] Batch done: {completed}/{len(jobs)} completed")
        return jobs

    async def _process_one(
        self,
        ctx: RequestContext,
        operation: OperationType,
        transformer: ImageTransformer,
        options: OperationOptions,
        upload: StagedUpload,
    ) -> Job:
        started = time.monotonic()
        try:
            job = await asyncio.to_thread(
                self.job_store.create, ctx.user_id, operation, upload.file_name, upload.size
            )

            with tracer.start_as_current_span("jobs.process") as span:
                span.set_attribute("job.id", job.id)
                span.set_attribute("job.operation", operation.value)
                span.set_attribute("job.original_size", upload.size)

                artifact_ref = None
                try:
                    content = await asyncio.to_thread(upload.read)
                    result = await self._transform(transformer, content, options)
                    if operation is OperationType.COMPRESS and result.size >= len(content):
                        result = await self._compress_harder(job, transformer, content, options, result)

                    extension = output_extension(upload.file_name, result.format)
                    artifact_ref = await asyncio.to_thread(
                        self.artifact_store.write, job.id, result.data, extension
                    )
                    update = JobUpdate.completed(
                        original_size=upload.size,
                        processed_size=result.size,
                        artifact_ref=artifact_ref,
                        download_token=secrets.token_hex(32),
                        expires_at=self.clock() + self.ttl,
                        processing_time_ms=self._elapsed_ms(started),
                    )
                except Exception as e:
                    logger.opt(exception=e).warning(
                        f"[job {job.id}] {operation.value} failed for {upload.file_name}: {e}"
                    )
                    span.record_exception(e)
                    if artifact_ref is not None:
                        self._discard_artifact(job.id, artifact_ref)
                        artifact_ref = None
                    update = JobUpdate.failed(_failure_message(e), self._elapsed_ms(started))

                span.set_attribute("job.status", update.status.value)
                try:
                    return await asyncio.to_thread(self.job_store.update, job.id, update)
                except Exception:
                    if artifact_ref is not None:
                        self._discard_artifact(job.id, artifact_ref)
                    raise
        finally:
            self.upload_area.discard(upload)

    async def _transform(
        self,
        transformer: ImageTransformer,
        content: bytes,
        options: OperationOptions,
        aggressive: bool = False,
    ) -> TransformResult:
        result = await asyncio.wait_for(
            asyncio.to_thread(transformer.apply, content, options, aggressive),
            timeout=self.timeout,
        )
        if not result.data:
            raise ProcessingFailure("Transformer produced no output")
        return result

    async def _compress_harder(
        self,
        job: Job,
        transformer: ImageTransformer,
        content: bytes,
        options: OperationOptions,
        first: TransformResult,
    ) -> TransformResult:
        """Retry once in aggressive mode; keep whichever output is smaller."""
        logger.debug(f"[job {job.id}] Output not smaller than input ({first.size} bytes), retrying aggressively")
        try:
            retry = await self._transform(transformer, content, options, aggressive=True)
        except Exception as e:
            logger.warning(f"[job {job.id}] Aggressive compression failed, keeping first result: {e}")
            return first
        return retry if retry.size < first.size else first

    def _discard_artifact(self, job_id: int, reference: str) -> None:
        try:
            self.artifact_store.delete(reference)
        except Exception as e:
            logger.error(f"[job {job_id}] Could not remove orphaned artifact {reference}: {e}")

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
