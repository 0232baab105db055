"""
Unit tests for ProcessingInvoker.

Jobs run end to end against in-memory job storage, a real upload area and
a real local artifact store under tmp_path.
"""

import io
import random
import re
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image

from app.jobs.services.local_artifact_store import LocalArtifactStore
from app.jobs.services.processing import ProcessingInvoker
from app.jobs.services.transforms import get_transformer
from app.jobs.services.upload_area import UploadArea
from pixdrop_core.domain.exceptions import StorageUnavailable
from pixdrop_core.jobs import JobStatus, OperationType
from pixdrop_core.jobs.options import CompressOptions, ResizeOptions
from pixdrop_core.runtime.context import RequestContext
from tests.app.jobs.fakes import FakeTransformer, InMemoryArtifactStore, InMemoryJobStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestCompressEndToEnd:
    """A large JPEG compressed at quality 80."""

    @pytest.mark.asyncio
    async def test_large_jpeg_completes_smaller(self, invoker, job_store, upload_area, ctx):
        content = _noisy_jpeg((1000, 700))
        staged = upload_area.stage(content, "holiday.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(quality=80), [staged])

        assert job.status is JobStatus.COMPLETED
        assert job.processed_size < job.original_size == len(content)
        assert job.compression_ratio > 0
        assert re.fullmatch(r"[0-9a-f]{64}", job.download_token)
        assert job.expires_at == NOW + timedelta(hours=24)
        assert job.is_consistent()

    @pytest.mark.asyncio
    async def test_artifact_holds_processed_bytes(self, invoker, local_store, upload_area, ctx):
        staged = upload_area.stage(_noisy_jpeg((400, 300)), "cat.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert local_store.size(job.artifact_ref) == job.processed_size
        assert re.fullmatch(r"job_%d_[0-9a-f]{32}\.jpg" % job.id, job.artifact_ref)

    @pytest.mark.asyncio
    async def test_download_url_uses_token_and_id(self, invoker, upload_area, ctx):
        staged = upload_area.stage(_noisy_jpeg((64, 64)), "a.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert job.download_url == f"/download/{job.download_token}/{job.id}"


class TestFailureContainment:
    """A failing transform fails only its own job."""

    @pytest.mark.asyncio
    async def test_transform_error_marks_job_failed(self, job_store, artifact_store, upload_area, ctx):
        invoker = _invoker(job_store, artifact_store, upload_area, FakeTransformer())
        staged = upload_area.stage(b"corrupt bytes", "broken.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert job.status is JobStatus.FAILED
        assert job.download_token is None
        assert job.artifact_ref is None
        assert job.error == "Unsupported or corrupt image"
        assert artifact_store.blobs == {}
        assert not staged.path.exists()

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_siblings(self, job_store, artifact_store, upload_area, ctx):
        invoker = _invoker(job_store, artifact_store, upload_area, FakeTransformer())
        staged = [
            upload_area.stage(b"good one", "a.jpg", "image/jpeg"),
            upload_area.stage(b"corrupt two", "b.jpg", "image/jpeg"),
            upload_area.stage(b"good three", "c.jpg", "image/jpeg"),
        ]

        jobs = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), staged)

        assert [job.status for job in jobs] == [JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.COMPLETED]
        assert [job.file_name for job in jobs] == ["a.jpg", "b.jpg", "c.jpg"]
        assert len(artifact_store.blobs) == 2
        assert list(upload_area.base_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_artifact_write_error_marks_job_failed(self, job_store, artifact_store, upload_area, ctx):
        artifact_store.fail_writes = True
        invoker = _invoker(job_store, artifact_store, upload_area, FakeTransformer())
        staged = upload_area.stage(b"fine", "a.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert job.status is JobStatus.FAILED
        assert job.error == "Processing failed"

    @pytest.mark.asyncio
    async def test_timeout_marks_job_failed(self, job_store, artifact_store, upload_area, ctx):
        class SlowTransformer(FakeTransformer):
            def apply(self, content, settings, aggressive=False):
                time.sleep(0.5)
                return super().apply(content, settings, aggressive)

        invoker = _invoker(job_store, artifact_store, upload_area, SlowTransformer(), timeout=0.05)
        staged = upload_area.stage(b"slow", "a.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert job.status is JobStatus.FAILED
        assert job.error == "Processing timed out"

    @pytest.mark.asyncio
    async def test_storage_outage_propagates_and_cleans_uploads(self, artifact_store, upload_area, ctx):
        class DownJobStore(InMemoryJobStore):
            def create(self, *args, **kwargs):
                raise StorageUnavailable("Job storage temporarily unavailable")

        invoker = _invoker(DownJobStore(), artifact_store, upload_area, FakeTransformer())
        staged = [upload_area.stage(b"one", "a.jpg", "image/jpeg"), upload_area.stage(b"two", "b.jpg", "image/jpeg")]

        with pytest.raises(StorageUnavailable):
            await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), staged)

        assert list(upload_area.base_path.iterdir()) == []


class TestCompressionRetry:
    """Outputs that are not smaller trigger one aggressive retry."""

    @pytest.mark.asyncio
    async def test_retries_aggressively_when_output_grows(self, job_store, artifact_store, upload_area, ctx):
        transformer = FakeTransformer(ratio=1.2, aggressive_ratio=0.6)
        invoker = _invoker(job_store, artifact_store, upload_area, transformer)
        staged = upload_area.stage(b"z" * 1000, "a.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert [call[2] for call in transformer.calls] == [False, True]
        assert job.processed_size == 600

    @pytest.mark.asyncio
    async def test_keeps_smaller_first_result(self, job_store, artifact_store, upload_area, ctx):
        transformer = FakeTransformer(ratio=1.1, aggressive_ratio=1.5)
        invoker = _invoker(job_store, artifact_store, upload_area, transformer)
        staged = upload_area.stage(b"z" * 1000, "a.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert job.status is JobStatus.COMPLETED
        assert job.processed_size == 1100
        assert job.compression_ratio < 0

    @pytest.mark.asyncio
    async def test_no_retry_for_other_operations(self, job_store, artifact_store, upload_area, ctx):
        transformer = FakeTransformer(ratio=2.0)
        invoker = _invoker(job_store, artifact_store, upload_area, transformer)
        staged = upload_area.stage(b"z" * 100, "a.jpg", "image/jpeg")

        await invoker.process_batch(ctx, OperationType.RESIZE, ResizeOptions(width=10), [staged])

        assert len(transformer.calls) == 1


class TestResizeNoEnlarge:
    """Resize with doNotEnlarge and a box bigger than the image."""

    @pytest.mark.asyncio
    async def test_output_is_not_upscaled(self, invoker, local_store, upload_area, ctx):
        content = _noisy_jpeg((200, 100))
        staged = upload_area.stage(content, "small.jpg", "image/jpeg")
        options = ResizeOptions(width=800, height=400, do_not_enlarge=True)

        [job] = await invoker.process_batch(ctx, OperationType.RESIZE, options, [staged])

        assert job.status is JobStatus.COMPLETED
        with Image.open(io.BytesIO(local_store.read(job.artifact_ref))) as output:
            assert output.size == (200, 100)
        assert job.processed_size < len(_noisy_jpeg((800, 400)))


class TestOwnership:
    @pytest.mark.asyncio
    async def test_jobs_belong_to_caller(self, invoker, upload_area):
        ctx = RequestContext(request_id="req-1", user_id="user-7", is_premium=True)
        staged = [upload_area.stage(_noisy_jpeg((32, 32)), f"{i}.jpg", "image/jpeg") for i in range(2)]

        jobs = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), staged)

        assert {job.owner_id for job in jobs} == {"user-7"}

    @pytest.mark.asyncio
    async def test_anonymous_jobs_have_no_owner(self, invoker, upload_area, ctx):
        staged = upload_area.stage(_noisy_jpeg((32, 32)), "a.jpg", "image/jpeg")

        [job] = await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert job.owner_id is None



class TestStorageCallsOffLoop:
    """Blocking job store calls run in worker threads."""

    @pytest.mark.asyncio
    async def test_create_and_update_run_off_the_event_loop(self, artifact_store, upload_area, ctx):
        class ThreadRecordingJobStore(InMemoryJobStore):
            def __init__(self):
                super().__init__()
                self.threads = []

            def create(self, *args, **kwargs):
                self.threads.append(threading.get_ident())
                return super().create(*args, **kwargs)

            def update(self, *args, **kwargs):
                self.threads.append(threading.get_ident())
                return super().update(*args, **kwargs)

        store = ThreadRecordingJobStore()
        invoker = _invoker(store, artifact_store, upload_area, FakeTransformer())
        staged = upload_area.stage(b"image bytes", "a.jpg", "image/jpeg")

        await invoker.process_batch(ctx, OperationType.COMPRESS, CompressOptions(), [staged])

        assert len(store.threads) == 2
        assert threading.get_ident() not in store.threads

def _noisy_jpeg(size: tuple[int, int]) -> bytes:
    """High quality JPEG of random pixels (deterministic per size)."""
    width, height = size
    pixels = random.Random(width * 7919 + height).randbytes(width * height * 3)
    buffer = io.BytesIO()
    Image.frombytes("RGB", size, pixels).save(buffer, format="JPEG", quality=100)
    return buffer.getvalue()


def _invoker(job_store, artifact_store, upload_area, transformer, timeout: float = 5.0) -> ProcessingInvoker:
    return ProcessingInvoker(
        job_store=job_store,
        artifact_store=artifact_store,
        upload_area=upload_area,
        clock=lambda: NOW,
        timeout=timeout,
        transformer_factory=lambda operation: transformer,
    )


# --- Fixtures ---


@pytest.fixture
def job_store():
    return InMemoryJobStore()


@pytest.fixture
def artifact_store():
    return InMemoryArtifactStore()


@pytest.fixture
def upload_area(tmp_path):
    return UploadArea(base_path=str(tmp_path / "uploads"))


@pytest.fixture
def ctx():
    return RequestContext(request_id="req-test")


@pytest.fixture
def local_store(tmp_path):
    return LocalArtifactStore(base_path=str(tmp_path / "processed"))


@pytest.fixture
def invoker(job_store, local_store, upload_area):
    """Invoker with the real Pillow transformers and a local artifact store."""
    return ProcessingInvoker(
        job_store=job_store,
        artifact_store=local_store,
        upload_area=upload_area,
        clock=lambda: NOW,
        timeout=30,
        transformer_factory=get_transformer,
    )
