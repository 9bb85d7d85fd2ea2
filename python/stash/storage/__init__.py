"""Storage module for file content.

Provides:
- Blob stores (local filesystem, in-memory fake)
- Path building utilities for consistent storage paths
"""

from stash.storage.client import (
    BlobStoreBase,
    FakeBlobStore,
    LocalBlobStore,
    StagedBlob,
    StorageError,
    get_blob_store,
    iter_chunks,
)
from stash.storage.paths import build_storage_path

__all__ = [
    "BlobStoreBase",
    "LocalBlobStore",
    "FakeBlobStore",
    "StagedBlob",
    "StorageError",
    "get_blob_store",
    "iter_chunks",
    "build_storage_path",
]
