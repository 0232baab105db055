"""
Local filesystem artifact store.

Processed outputs live flat in one directory, named
``job_{job_id}_{random}{ext}``. The name is generated here, never taken
from the client.
"""

from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Iterator

from loguru import logger

from pixdrop_core.config import settings

DEFAULT_EXTENSION = ".jpg"
_EXTENSION_PATTERN = re.compile(r"^\.[a-z0-9]{1,5}$")


def artifact_extension(file_name: str) -> str:
    """Extension of ``file_name`` (lowercased) or ``.jpg`` when unusable."""
    suffix = Path(file_name).suffix.lower()
    return suffix if _EXTENSION_PATTERN.match(suffix) else DEFAULT_EXTENSION


def build_artifact_name(job_id: int, extension: str) -> str:
    """Opaque artifact name embedding the job id and a random component."""
    if not _EXTENSION_PATTERN.match(extension):
        extension = DEFAULT_EXTENSION
    return f"job_{job_id}_{uuid.uuid4().hex}{extension}"


class LocalArtifactStore:
    """
    File-system based artifact storage.

    Usage:
        store = LocalArtifactStore(base_path="/var/lib/pixdrop/processed")
        ref = store.write(42, b"...", ".png")
        data = store.read(ref)
    """

    def __init__(self, base_path: str | None = None):
        """
        Initialize local storage.

        Args:
            base_path: Output directory (defaults to settings.ARTIFACT_DIR).
        """
        self.base_path = Path(base_path or settings.ARTIFACT_DIR).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalArtifactStore initialized at {self.base_path}")

    def _resolve(self, reference: str) -> Path:
        """Map a reference to a path, refusing anything outside the store."""
        target = (self.base_path / reference).resolve()
        if target.parent != self.base_path:
            raise ValueError(f"Invalid artifact reference: {reference!r}")
        return target

    def write(self, job_id: int, content: bytes, extension: str) -> str:
        """
        Persist processed bytes.

        Args:
            job_id: Owning job id.
            content: Processed bytes.
            extension: File extension including the dot.

        Returns:
            str: The artifact reference (file name relative to the store).
        """
        reference = build_artifact_name(job_id, extension)
        target = self._resolve(reference)
        # Write to a temp name first so a crash never leaves a partial artifact
        partial = target.with_name(f".{target.name}.part")
        partial.write_bytes(content)
        partial.replace(target)

        logger.info(f"[job {job_id}] Stored artifact {reference} ({len(content)} bytes)")
        return reference

    def exists(self, reference: str) -> bool:
        try:
            return self._resolve(reference).is_file()
        except ValueError:
            return False

    def size(self, reference: str) -> int:
        return self._resolve(reference).stat().st_size

    def iter_chunks(self, reference: str, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """
        Stream artifact bytes.

        Raises:
            FileNotFoundError: If the artifact doesn't exist.
        """
        target = self._resolve(reference)
        with target.open("rb") as handle:
            while chunk := handle.read(chunk_size):
                yield chunk

    def read(self, reference: str) -> bytes:
        """
        Read a whole artifact.

        Raises:
            FileNotFoundError: If the artifact doesn't exist.
        """
        target = self._resolve(reference)
        if not target.is_file():
            raise FileNotFoundError(f"Artifact not found: {reference}")
        return target.read_bytes()

    def delete(self, reference: str) -> None:
        target = self._resolve(reference)

        if target.exists():
            target.unlink()
            logger.info(f"Deleted artifact {reference}")
        else:
            logger.warning(f"Artifact not found for deletion: {reference}")
