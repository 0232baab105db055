"""
Unit tests for the artifact store backends and the upload area.
"""

import os
import re
import time
from unittest.mock import MagicMock, patch

import pytest
from minio.error import S3Error

from app.jobs.protocols import ArtifactStore
from app.jobs.services.artifact_store import MinIOArtifactStore, get_artifact_store
from app.jobs.services.local_artifact_store import (
    LocalArtifactStore,
    artifact_extension,
    build_artifact_name,
)
from app.jobs.services.upload_area import UploadArea


class TestArtifactNames:
    def test_name_embeds_job_id_and_random_part(self):
        first = build_artifact_name(12, ".png")
        second = build_artifact_name(12, ".png")

        assert re.fullmatch(r"job_12_[0-9a-f]{32}\.png", first)
        assert first != second

    def test_bad_extension_falls_back_to_jpg(self):
        assert build_artifact_name(1, "/../x").endswith(".jpg")

    @pytest.mark.parametrize(
        "file_name, expected",
        [("a.PNG", ".png"), ("a.tar.gz", ".gz"), ("noext", ".jpg"), ("weird.ex/t", ".jpg"), ("a.", ".jpg")],
    )
    def test_artifact_extension(self, file_name, expected):
        assert artifact_extension(file_name) == expected


class TestLocalArtifactStore:
    def test_satisfies_protocol(self, local_store):
        assert isinstance(local_store, ArtifactStore)

    def test_write_then_read(self, local_store):
        reference = local_store.write(5, b"pixels", ".webp")

        assert reference.startswith("job_5_")
        assert local_store.exists(reference)
        assert local_store.size(reference) == 6
        assert local_store.read(reference) == b"pixels"
        assert b"".join(local_store.iter_chunks(reference, chunk_size=4)) == b"pixels"

    def test_no_partial_files_left(self, local_store):
        local_store.write(5, b"pixels", ".jpg")

        assert not [p for p in local_store.base_path.iterdir() if p.name.endswith(".part")]

    def test_delete(self, local_store):
        reference = local_store.write(5, b"pixels", ".jpg")

        local_store.delete(reference)

        assert not local_store.exists(reference)
        with pytest.raises(FileNotFoundError):
            local_store.read(reference)

    def test_references_cannot_escape_the_store(self, local_store):
        assert local_store.exists("../secrets.txt") is False
        with pytest.raises(ValueError):
            local_store.read("../secrets.txt")


class TestMinIOArtifactStore:
    def test_write_puts_object(self, minio_client):
        store = MinIOArtifactStore(client=minio_client, bucket="artifacts")

        reference = store.write(3, b"abc", ".png")

        kwargs = minio_client.put_object.call_args.kwargs
        assert kwargs["bucket_name"] == "artifacts"
        assert kwargs["object_name"] == reference
        assert kwargs["length"] == 3
        assert re.fullmatch(r"job_3_[0-9a-f]{32}\.png", reference)

    def test_creates_missing_bucket(self, minio_client):
        minio_client.bucket_exists.return_value = False

        MinIOArtifactStore(client=minio_client, bucket="artifacts")

        minio_client.make_bucket.assert_called_once_with("artifacts")

    def test_exists_false_for_missing_key(self, minio_client):
        minio_client.stat_object.side_effect = _MissingKey()
        store = MinIOArtifactStore(client=minio_client, bucket="artifacts")

        assert store.exists("job_1_x.jpg") is False

    def test_exists_and_size(self, minio_client):
        minio_client.stat_object.return_value = MagicMock(size=42)
        store = MinIOArtifactStore(client=minio_client, bucket="artifacts")

        assert store.exists("job_1_x.jpg") is True
        assert store.size("job_1_x.jpg") == 42

    def test_iter_chunks_releases_connection(self, minio_client):
        response = MagicMock()
        response.stream.return_value = iter([b"ab", b"c"])
        minio_client.get_object.return_value = response
        store = MinIOArtifactStore(client=minio_client, bucket="artifacts")

        assert b"".join(store.iter_chunks("job_1_x.jpg")) == b"abc"
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_delete_removes_object(self, minio_client):
        store = MinIOArtifactStore(client=minio_client, bucket="artifacts")

        store.delete("job_1_x.jpg")

        minio_client.remove_object.assert_called_once_with("artifacts", "job_1_x.jpg")


class TestGetArtifactStore:
    def test_local_backend(self, tmp_path):
        with patch("app.jobs.services.artifact_store.settings") as mock_settings, patch(
            "app.jobs.services.local_artifact_store.settings"
        ) as local_settings:
            mock_settings.ARTIFACT_BACKEND = "local"
            local_settings.ARTIFACT_DIR = str(tmp_path / "out")

            assert isinstance(get_artifact_store(), LocalArtifactStore)

    def test_minio_backend(self, minio_client):
        with patch("app.jobs.services.artifact_store.settings") as mock_settings, patch(
            "app.jobs.services.artifact_store.get_minio_client", return_value=minio_client
        ):
            mock_settings.ARTIFACT_BACKEND = "minio"
            mock_settings.MINIO_BUCKET_ARTIFACTS = "artifacts"

            assert isinstance(get_artifact_store(), MinIOArtifactStore)

    def test_unknown_backend(self):
        with patch("app.jobs.services.artifact_store.settings") as mock_settings:
            mock_settings.ARTIFACT_BACKEND = "ftp"

            with pytest.raises(ValueError):
                get_artifact_store()


class TestUploadArea:
    def test_stage_and_discard(self, tmp_path):
        area = UploadArea(base_path=str(tmp_path / "uploads"))

        staged = area.stage(b"raw", "../../evil.jpg", "image/jpeg")

        assert staged.path.parent == area.base_path
        assert staged.read() == b"raw"
        assert staged.size == 3
        area.discard(staged)
        assert not staged.path.exists()

    def test_discard_twice_is_harmless(self, tmp_path):
        area = UploadArea(base_path=str(tmp_path / "uploads"))
        staged = area.stage(b"raw", "a.jpg", "image/jpeg")

        area.discard(staged)
        area.discard(staged)

    def test_sweep_stale_removes_old_files_only(self, tmp_path):
        area = UploadArea(base_path=str(tmp_path / "uploads"))
        old = area.stage(b"old", "a.jpg", "image/jpeg")
        fresh = area.stage(b"new", "b.jpg", "image/jpeg")
        an_hour_ago = time.time() - 3600
        os.utime(old.path, (an_hour_ago, an_hour_ago))

        removed = area.sweep_stale(max_age_seconds=600)

        assert removed == 1
        assert not old.path.exists()
        assert fresh.path.exists()


class _MissingKey(S3Error):
    """S3Error for a missing object, built without a live HTTP response."""

    code = "NoSuchKey"

    def __init__(self):
        Exception.__init__(self, "NoSuchKey")


# --- Fixtures ---


@pytest.fixture
def local_store(tmp_path):
    return LocalArtifactStore(base_path=str(tmp_path / "processed"))


@pytest.fixture
def minio_client():
    client = MagicMock()
    client.bucket_exists.return_value = True
    return client
