"""Blob store abstraction for file content.

Provides a clean interface for content operations with:
- Staging (incremental copy of an incoming stream to a temporary object)
- Publishing (atomic move of a staged object to its final path)
- Opening (a read handle taken before the first byte is sent)
- Object deletion (best effort, after the owning transaction commits)

Content is never held whole in memory by LocalBlobStore. All methods
receive the full storage_path directly - no prefix manipulation.
"""

import io
import logging
import os
import shutil
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO
from uuid import uuid4

from stash.config import Settings, StorageBackend, get_settings
from stash.storage.paths import FILES_ROOT

logger = logging.getLogger(__name__)

# Leading bytes kept from every staged stream for content sniffing
HEAD_BYTES = 16

STAGING_DIR = ".staging"


@dataclass(frozen=True)
class StagedBlob:
    """Content copied to a temporary object, not yet visible to readers."""

    key: str
    size: int
    head: bytes


class StorageError(Exception):
    """Blob store operation error."""

    def __init__(self, message: str, code: str = "E_STORAGE_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class BlobStoreBase(ABC):
    """Abstract base class for blob store implementations."""

    @abstractmethod
    def stage(self, chunks: Iterable[bytes]) -> StagedBlob:
        """Copy a stream of chunks to a temporary object.

        Raises:
            StorageError: If writing fails. Nothing is left behind.
        """
        ...

    @abstractmethod
    def publish(self, staged: StagedBlob, path: str) -> None:
        """Atomically move a staged object to its final path.

        Raises:
            StorageError: If the staged object is gone or the move fails.
        """
        ...

    @abstractmethod
    def discard(self, staged: StagedBlob) -> None:
        """Drop a staged object that will not be published."""
        ...

    @abstractmethod
    def open_object(self, path: str) -> BinaryIO:
        """Open a published object for reading.

        The returned handle keeps reading the same content even if the
        path is deleted afterwards.

        Raises:
            StorageError: code E_STORAGE_MISSING if the object doesn't exist.
        """
        ...

    @abstractmethod
    def delete_object(self, path: str) -> None:
        """Delete an object from storage.

        Best-effort operation - logs errors but doesn't raise.
        """
        ...

    @abstractmethod
    def destroy_all(self) -> None:
        """Remove every published and staged object."""
        ...


def iter_chunks(handle: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """Read an open handle to exhaustion in fixed-size chunks, then close it."""
    try:
        while chunk := handle.read(chunk_size):
            yield chunk
    finally:
        handle.close()


class LocalBlobStore(BlobStoreBase):
    """Filesystem blob store rooted at a directory.

    Staged objects are written under <root>/.staging and moved into place
    with os.replace, so a published path always holds complete content.
    """

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()
        self._staging = self._root / STAGING_DIR

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if target == self._root or self._root not in target.parents:
            raise StorageError(f"Invalid storage path: {path}", code="E_STORAGE_PATH")
        return target

    def stage(self, chunks: Iterable[bytes]) -> StagedBlob:
        self._staging.mkdir(parents=True, exist_ok=True)
        key = str(uuid4())
        temp_path = self._staging / key
        size = 0
        head = b""
        try:
            with open(temp_path, "wb") as handle:
                for chunk in chunks:
                    if not chunk:
                        continue
                    if len(head) < HEAD_BYTES:
                        head = (head + chunk)[:HEAD_BYTES]
                    handle.write(chunk)
                    size += len(chunk)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to stage upload: {e}") from e
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise
        return StagedBlob(key=key, size=size, head=head)

    def publish(self, staged: StagedBlob, path: str) -> None:
        target = self._resolve(path)
        source = self._staging / staged.key
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source, target)
        except FileNotFoundError as e:
            raise StorageError(
                f"Staged object not found: {staged.key}", code="E_STORAGE_MISSING"
            ) from e
        except OSError as e:
            raise StorageError(f"Failed to publish object: {e}") from e

    def discard(self, staged: StagedBlob) -> None:
        (self._staging / staged.key).unlink(missing_ok=True)

    def open_object(self, path: str) -> BinaryIO:
        target = self._resolve(path)
        try:
            return open(target, "rb")
        except FileNotFoundError as e:
            raise StorageError(f"Object not found: {path}", code="E_STORAGE_MISSING") from e

    def delete_object(self, path: str) -> None:
        try:
            self._resolve(path).unlink(missing_ok=True)
        except (OSError, StorageError) as e:
            logger.warning("Storage delete error: %s", e)

    def destroy_all(self) -> None:
        # Only the trees this store writes
        for tree in (self._root / FILES_ROOT, self._staging):
            shutil.rmtree(tree, ignore_errors=True)


class FakeBlobStore(BlobStoreBase):
    """In-memory blob store for tests and throwaway local runs.

    Stores content in dicts and provides deterministic behavior for unit tests.
    """

    def __init__(self):
        self._objects: dict[str, bytes] = {}
        self._staged: dict[str, bytes] = {}

    def stage(self, chunks: Iterable[bytes]) -> StagedBlob:
        buffer = io.BytesIO()
        for chunk in chunks:
            buffer.write(chunk)
        content = buffer.getvalue()
        key = str(uuid4())
        self._staged[key] = content
        return StagedBlob(key=key, size=len(content), head=content[:HEAD_BYTES])

    def publish(self, staged: StagedBlob, path: str) -> None:
        if staged.key not in self._staged:
            raise StorageError(f"Staged object not found: {staged.key}", code="E_STORAGE_MISSING")
        self._objects[path] = self._staged.pop(staged.key)

    def discard(self, staged: StagedBlob) -> None:
        self._staged.pop(staged.key, None)

    def open_object(self, path: str) -> BinaryIO:
        if path not in self._objects:
            raise StorageError(f"Object not found: {path}", code="E_STORAGE_MISSING")
        return io.BytesIO(self._objects[path])

    def delete_object(self, path: str) -> None:
        self._objects.pop(path, None)

    def destroy_all(self) -> None:
        self._objects.clear()
        self._staged.clear()

    # Test helper methods

    def put_object(self, path: str, content: bytes) -> None:
        """Store an object directly (test helper)."""
        self._objects[path] = content

    def get_object(self, path: str) -> bytes | None:
        """Get object content directly (test helper)."""
        return self._objects.get(path)

    @property
    def object_count(self) -> int:
        return len(self._objects)

    @property
    def staged_count(self) -> int:
        return len(self._staged)


def get_blob_store(settings: Settings | None = None) -> BlobStoreBase:
    """Get the configured blob store.

    Returns:
        LocalBlobStore rooted at STORAGE_PATH, or FakeBlobStore when
        STORAGE_BACKEND=memory.
    """
    if settings is None:
        settings = get_settings()

    if settings.storage_backend == StorageBackend.MEMORY:
        return FakeBlobStore()

    return LocalBlobStore(settings.storage_path)
