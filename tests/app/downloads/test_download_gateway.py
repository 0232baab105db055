"""Unit tests for DownloadGateway."""

from datetime import datetime, timedelta, timezone

import pytest

from app.downloads.gateway import DownloadGateway, download_file_name
from pixdrop_core.domain.exceptions import (
    ArtifactExpired,
    ArtifactMissing,
    InvalidDownloadToken,
    JobNotReady,
)
from pixdrop_core.jobs import Job, JobStatus, JobUpdate, OperationType
from tests.app.jobs.fakes import InMemoryArtifactStore, InMemoryJobStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
TOKEN = "ab" * 32


class TestResolveOrder:
    def test_valid_download(self, gateway, completed_job):
        resolved = gateway.resolve(TOKEN, str(completed_job.id))

        assert resolved.size == 11
        assert b"".join(resolved.chunks()) == b"jpeg-bytes!"
        assert resolved.file_name == "compressed_cat.jpg"

    def test_unknown_job_is_not_ready_whatever_the_token(self, gateway):
        with pytest.raises(JobNotReady):
            gateway.resolve(TOKEN, "12345")
        with pytest.raises(JobNotReady):
            gateway.resolve("anything", "12345")

    def test_non_numeric_id_is_not_ready(self, gateway):
        with pytest.raises(JobNotReady):
            gateway.resolve(TOKEN, "../etc/passwd")

    def test_processing_job_is_not_ready(self, gateway, job_store):
        job = job_store.create(None, OperationType.COMPRESS, "a.jpg", 10)

        with pytest.raises(JobNotReady):
            gateway.resolve(TOKEN, str(job.id))

    def test_failed_job_is_not_ready(self, gateway, job_store):
        job = job_store.create(None, OperationType.COMPRESS, "a.jpg", 10)
        job_store.update(job.id, JobUpdate.failed("boom"))

        with pytest.raises(JobNotReady):
            gateway.resolve(TOKEN, str(job.id))

    def test_expired_wins_over_wrong_token(self, job_store, artifact_store, completed_job):
        gateway = DownloadGateway(job_store, artifact_store, clock=lambda: NOW + timedelta(hours=25))

        with pytest.raises(ArtifactExpired):
            gateway.resolve("wrong", str(completed_job.id))

    def test_expired_with_correct_token(self, job_store, artifact_store, completed_job):
        gateway = DownloadGateway(job_store, artifact_store, clock=lambda: NOW + timedelta(hours=25))

        with pytest.raises(ArtifactExpired):
            gateway.resolve(TOKEN, str(completed_job.id))

    def test_wrong_token_is_refused(self, gateway, completed_job):
        with pytest.raises(InvalidDownloadToken):
            gateway.resolve("cd" * 32, str(completed_job.id))

    def test_missing_artifact_is_integrity_anomaly(self, gateway, artifact_store, completed_job):
        artifact_store.blobs.clear()

        with pytest.raises(ArtifactMissing) as exc_info:
            gateway.resolve(TOKEN, str(completed_job.id))

        assert exc_info.value.status_code == 404

    def test_repeated_downloads_are_identical(self, gateway, completed_job):
        first = b"".join(gateway.resolve(TOKEN, str(completed_job.id)).chunks())
        second = b"".join(gateway.resolve(TOKEN, str(completed_job.id)).chunks())

        assert first == second


class TestDownloadFileName:
    @pytest.mark.parametrize(
        "operation, file_name, artifact_ref, expected",
        [
            (OperationType.COMPRESS, "cat.jpg", "job_1_x.jpg", "compressed_cat.jpg"),
            (OperationType.RESIZE, "Cat.JPG", "job_1_x.jpg", "resized_Cat.JPG"),
            (OperationType.CROP, "shot.png", "job_1_x.png", "cropped_shot.png"),
            (OperationType.CONVERT, "shot.png", "job_1_x.webp", "converted_shot.webp"),
            (OperationType.COMPRESS, "flat.png", "job_1_x.jpg", "compressed_flat.jpg"),
            (OperationType.COMPRESS, "noext", "job_1_x.jpg", "compressed_noext"),
            (OperationType.CONVERT, "noext", "job_1_x.png", "converted_noext.png"),
            (OperationType.CROP, "C:\\Users\\me\\pic.gif", "job_1_x.gif", "cropped_pic.gif"),
        ],
    )
    def test_name(self, operation, file_name, artifact_ref, expected):
        job = Job(
            id=1,
            operation=operation,
            file_name=file_name,
            original_size=1,
            status=JobStatus.COMPLETED,
            artifact_ref=artifact_ref,
        )

        assert download_file_name(job) == expected


# --- Fixtures ---


@pytest.fixture
def job_store():
    return InMemoryJobStore()


@pytest.fixture
def artifact_store():
    return InMemoryArtifactStore()


@pytest.fixture
def gateway(job_store, artifact_store):
    return DownloadGateway(job_store, artifact_store, clock=lambda: NOW)


@pytest.fixture
def completed_job(job_store, artifact_store):
    job = job_store.create("user-1", OperationType.COMPRESS, "cat.jpg", 20)
    reference = artifact_store.write(job.id, b"jpeg-bytes!", ".jpg")
    return job_store.update(
        job.id,
        JobUpdate.completed(
            original_size=20,
            processed_size=11,
            artifact_ref=reference,
            download_token=TOKEN,
            expires_at=NOW + timedelta(hours=24),
        ),
    )
