"""Tests for blob stores and path utilities.

Tests cover:
- Path building (fan-out layout, fresh version per upload)
- LocalBlobStore stage / publish / open / delete on a real directory
- FakeBlobStore behavior
- Chunked reading
"""

import io
from uuid import uuid4

import pytest

from stash.config import Settings
from stash.storage import (
    FakeBlobStore,
    LocalBlobStore,
    StorageError,
    build_storage_path,
    get_blob_store,
    iter_chunks,
)
from stash.storage.client import HEAD_BYTES, STAGING_DIR


class TestPathBuilding:
    """Tests for storage path building."""

    def test_layout(self):
        file_id = uuid4()

        path = build_storage_path(file_id, "v1")

        assert path == f"files/{str(file_id)[:2]}/{file_id}/v1"
        assert not path.startswith("/")

    def test_new_version_each_call(self):
        file_id = uuid4()

        first, second = build_storage_path(file_id), build_storage_path(file_id)

        assert first != second
        assert first.rsplit("/", 1)[0] == second.rsplit("/", 1)[0]


class TestIterChunks:
    def test_reads_in_fixed_chunks_and_closes(self):
        handle = io.BytesIO(b"abcdefghij")

        chunks = list(iter_chunks(handle, 4))

        assert chunks == [b"abcd", b"efgh", b"ij"]
        assert handle.closed

    def test_empty_handle_yields_nothing(self):
        assert list(iter_chunks(io.BytesIO(b""), 4)) == []


class TestLocalBlobStore:
    """Tests for the filesystem blob store."""

    @pytest.fixture
    def local_store(self, tmp_path) -> LocalBlobStore:
        return LocalBlobStore(tmp_path / "blobs")

    def test_stage_then_publish(self, local_store: LocalBlobStore):
        staged = local_store.stage([b"hello ", b"world"])

        assert staged.size == 11
        assert staged.head == b"hello world"[:HEAD_BYTES]

        local_store.publish(staged, "files/a/v1")

        with local_store.open_object("files/a/v1") as handle:
            assert handle.read() == b"hello world"
        assert not any((local_store.root / STAGING_DIR).iterdir())

    def test_head_keeps_only_leading_bytes(self, local_store: LocalBlobStore):
        staged = local_store.stage([b"%PD", b"F-1.7", b"x" * 100])

        assert staged.head == (b"%PDF-1.7" + b"x" * 100)[:HEAD_BYTES]
        assert staged.size == 108

    def test_discard_removes_staged(self, local_store: LocalBlobStore):
        staged = local_store.stage([b"gone"])
        local_store.discard(staged)

        with pytest.raises(StorageError) as exc_info:
            local_store.publish(staged, "files/a/v1")
        assert exc_info.value.code == "E_STORAGE_MISSING"

    def test_open_missing_object(self, local_store: LocalBlobStore):
        with pytest.raises(StorageError) as exc_info:
            local_store.open_object("files/missing/v1")

        assert exc_info.value.code == "E_STORAGE_MISSING"

    def test_open_handle_survives_delete(self, local_store: LocalBlobStore):
        """A reader keeps the version it opened after the path is removed."""
        local_store.publish(local_store.stage([b"first"]), "files/a/v1")
        handle = local_store.open_object("files/a/v1")

        local_store.delete_object("files/a/v1")

        assert handle.read() == b"first"
        handle.close()
        assert not (local_store.root / "files/a/v1").exists()

    def test_delete_missing_is_silent(self, local_store: LocalBlobStore):
        local_store.delete_object("files/never/v1")

    def test_path_escape_rejected(self, local_store: LocalBlobStore):
        with pytest.raises(StorageError):
            local_store.open_object("../outside")

    def test_destroy_all(self, local_store: LocalBlobStore):
        local_store.publish(local_store.stage([b"x"]), "files/a/v1")
        local_store.stage([b"y"])

        local_store.destroy_all()

        with pytest.raises(StorageError):
            local_store.open_object("files/a/v1")
        assert not (local_store.root / STAGING_DIR).exists()

    def test_destroy_all_leaves_foreign_entries(self, local_store: LocalBlobStore):
        local_store.publish(local_store.stage([b"x"]), "files/a/v1")
        (local_store.root / "notes.txt").write_text("keep me")
        (local_store.root / "backups").mkdir()
        (local_store.root / "backups" / "db.sqlite").write_bytes(b"data")

        local_store.destroy_all()

        assert (local_store.root / "notes.txt").read_text() == "keep me"
        assert (local_store.root / "backups" / "db.sqlite").read_bytes() == b"data"
        assert not (local_store.root / "files").exists()


class TestFakeBlobStore:
    """Tests for FakeBlobStore behavior."""

    def test_stage_publish_open(self):
        blobs = FakeBlobStore()
        staged = blobs.stage([b"abc", b"def"])

        assert blobs.staged_count == 1
        blobs.publish(staged, "files/a/v1")

        assert blobs.staged_count == 0
        assert blobs.get_object("files/a/v1") == b"abcdef"
        assert blobs.open_object("files/a/v1").read() == b"abcdef"

    def test_put_object_helper(self):
        blobs = FakeBlobStore()
        blobs.put_object("files/a/v1", b"content")

        assert blobs.get_object("files/a/v1") == b"content"
        assert blobs.object_count == 1

    def test_open_missing(self):
        with pytest.raises(StorageError) as exc_info:
            FakeBlobStore().open_object("files/missing/v1")

        assert exc_info.value.code == "E_STORAGE_MISSING"


class TestGetBlobStore:
    def test_memory_backend(self):
        settings = Settings(STASH_ENV="test", STORAGE_BACKEND="memory")

        assert isinstance(get_blob_store(settings), FakeBlobStore)

    def test_local_backend(self, tmp_path):
        settings = Settings(STASH_ENV="test", STORAGE_BACKEND="local", STORAGE_PATH=str(tmp_path))

        blobs = get_blob_store(settings)

        assert isinstance(blobs, LocalBlobStore)
        assert blobs.root == tmp_path.resolve()
