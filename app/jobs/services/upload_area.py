"""
Transient upload area.

Accepted uploads are written here before processing and removed right
after, whatever the outcome. Files left behind by a crash are removed by
the cleanup sweep.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from pixdrop_core.config import settings


@dataclass(frozen=True)
class StagedUpload:
    """An accepted upload waiting to be processed."""

    path: Path
    file_name: str
    content_type: str
    size: int

    def read(self) -> bytes:
        return self.path.read_bytes()


class UploadArea:
    """
    Directory of staged input files, kept apart from the artifact store.

    Usage:
        area = UploadArea()
        staged = area.stage(content, "cat.png", "image/png")
        ...
        area.discard(staged)
    """

    def __init__(self, base_path: str | None = None):
        self.base_path = Path(base_path or settings.UPLOAD_DIR).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def stage(self, content: bytes, file_name: str, content_type: str) -> StagedUpload:
        """
        Write an upload under a random name.

        Args:
            content: Uploaded bytes.
            file_name: Client file name (kept as metadata only).
            content_type: Declared MIME type.

        Returns:
            StagedUpload: Handle to the staged file.
        """
        path = self.base_path / uuid.uuid4().hex
        path.write_bytes(content)
        logger.debug(f"Staged upload {file_name} as {path.name}")
        return StagedUpload(path=path, file_name=file_name, content_type=content_type, size=len(content))

    def discard(self, upload: StagedUpload) -> None:
        """Delete a staged upload; missing files are ignored."""
        try:
            upload.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Staged upload {upload.path.name} already removed")

    def sweep_stale(self, max_age_seconds: float) -> int:
        """
        Delete staged files older than ``max_age_seconds``.

        Returns:
            int: Number of files removed.
        """
        cutoff = time.time() - max_age_seconds
        removed = 0
        for path in self.base_path.iterdir():
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink(missing_ok=True)
                removed += 1

        if removed:
            logger.info(f"Removed {removed} stale uploads from {self.base_path}")
        return removed
