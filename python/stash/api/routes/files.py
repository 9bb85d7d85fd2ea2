"""File routes.

Routes are transport-only:
- Extract the viewer from request.state
- Call exactly one service function
- Return success_response(...) or raise ApiError

Bucket and file names arrive as single escaped path segments (see
EncodedPathMiddleware) and are decoded by the name dependencies.
"""

import json
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from stash.api.deps import get_blobs, get_bucket_name, get_db, get_file_name, get_key_name
from stash.auth.middleware import Viewer, get_viewer
from stash.config import get_settings
from stash.errors import InvalidRequestError
from stash.responses import download_response, success_response
from stash.services import files as files_service
from stash.services import shares as shares_service
from stash.storage import BlobStoreBase, iter_chunks

router = APIRouter()


@router.post("/bucket/{bucket}/file/{file}/data")
def update_file_data(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    file_name: Annotated[str, Depends(get_file_name)],
    data: Annotated[str, Form()],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Merge a JSON object of key/value pairs into the file's data."""
    try:
        pairs = json.loads(data)
    except json.JSONDecodeError as e:
        raise InvalidRequestError(message="Invalid data: must be a JSON object") from e

    result = files_service.update_file_data(
        db, viewer.account_id, bucket_name, file_name, pairs
    )
    return success_response("file", result.to_json())


@router.post("/bucket/{bucket}/file/{file}/delete")
def delete_file(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    file_name: Annotated[str, Depends(get_file_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    blobs: Annotated[BlobStoreBase, Depends(get_blobs)],
) -> dict:
    """Delete a file permanently."""
    result = files_service.delete_file(db, blobs, viewer.account_id, bucket_name, file_name)
    return success_response("file", result.to_json())


@router.post("/bucket/{bucket}/file/{file}/share")
def share_file(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    file_name: Annotated[str, Depends(get_file_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a public share link for a file."""
    result = shares_service.create_file_share(db, viewer.account_id, bucket_name, file_name)
    return success_response("bucket", result.to_json())


@router.get("/bucket/{bucket}/file/{file}/{key}")
def get_file_data_key(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    file_name: Annotated[str, Depends(get_file_name)],
    key_name: Annotated[str, Depends(get_key_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Read one key of the file's data."""
    result = files_service.get_file_data_key(
        db, viewer.account_id, bucket_name, file_name, key_name
    )
    return success_response("file", result.to_json())


@router.post("/bucket/{bucket}/file/{file}")
def create_or_upload_file(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    file_name: Annotated[str, Depends(get_file_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    blobs: Annotated[BlobStoreBase, Depends(get_blobs)],
    upload: Annotated[UploadFile | None, File(alias="file")] = None,
) -> dict:
    """Create an empty file, or upload content when a multipart "file" is sent."""
    if upload is None:
        result = files_service.create_file(db, viewer.account_id, bucket_name, file_name)
    else:
        chunks = iter_chunks(upload.file, get_settings().upload_chunk_bytes)
        result = files_service.upload_file(
            db, blobs, viewer.account_id, bucket_name, file_name, chunks
        )
    return success_response("file", result.to_json())


@router.get("/bucket/{bucket}/file/{file}")
def download_file(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    file_name: Annotated[str, Depends(get_file_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    blobs: Annotated[BlobStoreBase, Depends(get_blobs)],
) -> StreamingResponse:
    """Stream the file's content."""
    download = files_service.open_file_download(
        db, blobs, viewer.account_id, bucket_name, file_name
    )
    return download_response(download)
