"""Public shared-content routes.

No authentication: the share token is the credential. Every route resolves
the token through the share service, which checks owner suspension and the
share's active flag first.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from stash.api.deps import get_blobs, get_db, get_file_name, get_key_name
from stash.responses import download_response, success_response
from stash.services import shares as shares_service
from stash.storage import BlobStoreBase

router = APIRouter(prefix="/shared")


@router.get("/bucket/{token}/file/{file}/{key}")
def get_shared_bucket_file_key(
    token: str,
    file_name: Annotated[str, Depends(get_file_name)],
    key_name: Annotated[str, Depends(get_key_name)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Read one data key of a file in a shared bucket."""
    result = shares_service.get_shared_bucket_file_key(db, token, file_name, key_name)
    return success_response("file", result.to_json())


@router.get("/bucket/{token}/file/{file}")
def download_shared_bucket_file(
    token: str,
    file_name: Annotated[str, Depends(get_file_name)],
    db: Annotated[Session, Depends(get_db)],
    blobs: Annotated[BlobStoreBase, Depends(get_blobs)],
) -> StreamingResponse:
    """Download a file from a shared bucket."""
    download = shares_service.open_shared_bucket_file(db, blobs, token, file_name)
    return download_response(download)


@router.get("/bucket/{token}")
def get_shared_bucket(
    token: str,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """View a shared bucket and its files."""
    result = shares_service.get_shared_bucket(db, token)
    return success_response("bucket", result.to_json())


@router.get("/file/{token}/{key}")
def get_shared_file_key(
    token: str,
    key_name: Annotated[str, Depends(get_key_name)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Read one data key of a shared file."""
    result = shares_service.get_shared_file_key(db, token, key_name)
    return success_response("file", result.to_json())


@router.get("/file/{token}")
def download_shared_file(
    token: str,
    db: Annotated[Session, Depends(get_db)],
    blobs: Annotated[BlobStoreBase, Depends(get_blobs)],
) -> StreamingResponse:
    """Download a shared file."""
    return download_response(shares_service.open_shared_file(db, blobs, token))
