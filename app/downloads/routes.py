"""
Download route for processed artifacts.
"""

from functools import lru_cache
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.downloads.gateway import DownloadGateway
from app.jobs.factory import get_artifact_store, get_job_store
from pixdrop_core.config import settings
from pixdrop_core.infrastructure.rate_limiter import limiter

router = APIRouter()


@lru_cache()
def get_download_gateway() -> DownloadGateway:
    """Get the download gateway wired to the shared stores."""
    return DownloadGateway(job_store=get_job_store(), artifact_store=get_artifact_store())


def content_disposition(file_name: str) -> str:
    """Attachment header with an ASCII fallback and an RFC 5987 UTF-8 name."""
    fallback = "".join(
        ch if 32 <= ord(ch) < 127 and ch not in '"\\' else "_" for ch in file_name
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


@router.get("/download/{token}/{job_id}")
@limiter.limit(settings.DOWNLOAD_RATE_LIMIT)
def download(
    request: Request,
    token: str,
    job_id: str,
    gateway: DownloadGateway = Depends(get_download_gateway),
):
    """
    Stream a processed file.

    Returns 404 when the job is unknown or not completed, 410 after
    expiry and 403 for a wrong token.
    """
    resolved = gateway.resolve(token, job_id)

    headers = {
        "Content-Disposition": content_disposition(resolved.file_name),
        "Content-Length": str(resolved.size),
        "Cache-Control": "no-cache, no-store, must-revalidate",
        "Pragma": "no-cache",
        "Expires": "0",
    }
    return StreamingResponse(resolved.chunks(), media_type="application/octet-stream", headers=headers)
