"""FastAPI dependencies for route handlers.

Everything comes from the Store attached to app.state at creation time.
Name dependencies read one routed path segment and undo the escaping
applied by EncodedPathMiddleware, so "/" and "%" survive in names.
"""

from fastapi import Request

from stash.db.session import get_db
from stash.middleware.encoded_path import decode_segment
from stash.storage import BlobStoreBase

__all__ = ["get_db", "get_blobs", "get_bucket_name", "get_file_name", "get_key_name"]


def get_blobs(request: Request) -> BlobStoreBase:
    """Get the blob store holding file content."""
    return request.app.state.store.blobs


def get_bucket_name(bucket: str) -> str:
    return decode_segment(bucket)


def get_file_name(file: str) -> str:
    return decode_segment(file)


def get_key_name(key: str) -> str:
    return decode_segment(key)
