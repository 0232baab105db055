"""
Image job routes.

This module handles:
- Batch submission of images for one operation
- Job lookup by id
- Listing the caller's recent jobs
- Recording usage of tools that run in the browser
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, Request, UploadFile
from loguru import logger

from app.jobs.factory import (
    get_entitlement_gate,
    get_job_store,
    get_processing_invoker,
    get_upload_area,
    get_usage_recorder,
)
from app.jobs.protocols import JobStore, UsageRecorder
from app.jobs.schemas import JobListResponse, JobSummary, TrackUsageRequest, TrackUsageResponse
from app.jobs.services.processing import ProcessingInvoker
from app.jobs.services.upload_area import StagedUpload, UploadArea
from pixdrop_core.auth.dependencies import get_auth_context, get_request_context, require_user
from pixdrop_core.auth.entitlements import EntitlementGate
from pixdrop_core.config import settings
from pixdrop_core.domain.auth import AuthContext
from pixdrop_core.domain.exceptions import InvalidUploadError, JobNotFound
from pixdrop_core.domain.usage import UsageEvent
from pixdrop_core.infrastructure.rate_limiter import limiter
from pixdrop_core.jobs import OperationType
from pixdrop_core.jobs.options import parse_options
from pixdrop_core.runtime.context import RequestContext

router = APIRouter()


async def _read_upload(upload: UploadFile) -> bytes:
    """Validate one uploaded file and return its bytes."""
    name = upload.filename or "unknown"
    content_type = (upload.content_type or "").lower()

    if content_type not in settings.ALLOWED_MIME_TYPES:
        raise InvalidUploadError(
            f"Unsupported file type for {name}",
            message_debug=f"content_type={content_type!r}",
        )
    if upload.size is not None and upload.size > settings.MAX_UPLOAD_BYTES:
        raise InvalidUploadError(f"File {name} exceeds the size limit")

    content = await upload.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise InvalidUploadError(f"File {name} exceeds the size limit")
    if not content:
        raise InvalidUploadError(f"File {name} is empty")
    return content


@router.post("/jobs/{operation}", response_model=JobListResponse)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def submit_jobs(
    request: Request,
    operation: OperationType,
    background_tasks: BackgroundTasks,
    images: Optional[list[UploadFile]] = File(default=None),
    quality: Optional[str] = Form(default=None),
    resize_mode: Optional[str] = Form(default=None, alias="resizeMode"),
    width: Optional[str] = Form(default=None),
    height: Optional[str] = Form(default=None),
    percentage: Optional[str] = Form(default=None),
    maintain_aspect_ratio: Optional[str] = Form(default=None, alias="maintainAspectRatio"),
    do_not_enlarge: Optional[str] = Form(default=None, alias="doNotEnlarge"),
    preserve_quality: Optional[str] = Form(default=None, alias="preserveQuality"),
    left: Optional[str] = Form(default=None),
    top: Optional[str] = Form(default=None),
    target_format: Optional[str] = Form(default=None, alias="targetFormat"),
    ctx: RequestContext = Depends(get_request_context),
    gate: EntitlementGate = Depends(get_entitlement_gate),
    upload_area: UploadArea = Depends(get_upload_area),
    invoker: ProcessingInvoker = Depends(get_processing_invoker),
    usage: UsageRecorder = Depends(get_usage_recorder),
):
    """
    Submit one or more images for an operation.

    Files are processed before the response is sent; each file gets its
    own job, completed or failed.

    Args:
        operation: compress, resize, crop or convert.
        images: The uploaded files.
        quality .. target_format: Operation settings (camelCase form fields).

    Returns:
        JobListResponse: One summary per file, in upload order.
    """
    files = images or []
    if not files:
        raise InvalidUploadError("No files uploaded")
    # Non-premium batches past one file always get the gate's 403
    if ctx.is_premium and len(files) > settings.MAX_BATCH_SIZE:
        raise InvalidUploadError(f"Too many files, at most {settings.MAX_BATCH_SIZE} per request")

    gate.enforce(is_premium=ctx.is_premium, batch_size=len(files))

    contents = [await _read_upload(upload) for upload in files]

    options = parse_options(
        operation,
        {
            "quality": quality,
            "resizeMode": resize_mode,
            "width": width,
            "height": height,
            "percentage": percentage,
            "maintainAspectRatio": maintain_aspect_ratio,
            "doNotEnlarge": do_not_enlarge,
            "preserveQuality": preserve_quality,
            "left": left,
            "top": top,
            "targetFormat": target_format,
        },
    )

    logger.info(f"[{ctx.request_id}] Accepted {len(files)} file(s) for {operation.value}")

    staged: list[StagedUpload] = []
    try:
        for upload, content in zip(files, contents):
            staged.append(
                await asyncio.to_thread(
                    upload_area.stage, content, upload.filename or "unknown", upload.content_type or ""
                )
            )
    except Exception:
        for item in staged:
            upload_area.discard(item)
        raise

    jobs = await invoker.process_batch(ctx, operation, options, staged)

    background_tasks.add_task(
        usage.record,
        UsageEvent(
            tool_name=operation.value,
            user_id=ctx.user_id,
            session_id=ctx.session_id,
            user_agent=ctx.user_agent,
            ip_address=ctx.ip_address,
        ),
    )

    return JobListResponse(jobs=[JobSummary.from_job(job) for job in jobs])


@router.get("/jobs/{job_id}", response_model=JobSummary)
def get_job(
    job_id: int,
    auth: AuthContext = Depends(get_auth_context),
    job_store: JobStore = Depends(get_job_store),
):
    """
    Get a job summary.

    The download URL is only included for the job's authenticated owner.
    """
    job = job_store.get(job_id)
    if job is None:
        raise JobNotFound("Job not found")

    is_owner = auth.user_id is not None and job.owner_id == auth.user_id
    return JobSummary.from_job(job, include_download=is_owner)


@router.get("/my-jobs", response_model=JobListResponse)
def list_my_jobs(
    limit: int = Query(default=settings.JOB_LIST_DEFAULT_LIMIT, ge=1, le=settings.JOB_LIST_MAX_LIMIT),
    user_id: str = Depends(require_user),
    job_store: JobStore = Depends(get_job_store),
):
    """
    List the caller's jobs, newest first.

    Args:
        limit: Max jobs to return.
    """
    jobs = job_store.list_by_owner(user_id, limit=limit)
    return JobListResponse(jobs=[JobSummary.from_job(job) for job in jobs])


@router.post("/usage", response_model=TrackUsageResponse)
@limiter.limit(settings.USAGE_RATE_LIMIT)
async def track_usage(
    request: Request,
    body: TrackUsageRequest,
    background_tasks: BackgroundTasks,
    auth: AuthContext = Depends(get_auth_context),
    usage: UsageRecorder = Depends(get_usage_recorder),
):
    """
    Record one use of a tool.

    Public endpoint for tools that never reach the job routes (crop and
    convert previews, the editor). The user id comes from the bearer token,
    never from the body.
    """
    background_tasks.add_task(
        usage.record,
        UsageEvent(
            tool_name=body.tool_name,
            user_id=auth.user_id,
            session_id=auth.session_id,
            user_agent=auth.user_agent,
            ip_address=auth.ip_address,
        ),
    )
    return TrackUsageResponse()
