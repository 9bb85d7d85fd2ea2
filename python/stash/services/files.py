"""File service layer.

Handles file creation, content upload, download, metadata and deletion.

Key invariants:
- Upload content is staged in the blob store before any lock is taken, so
  memory stays bounded and the lock is never held across network reads
- Admission, row write, blob publish and usage charge happen together under
  the account lock; on failure the staged or published blob is dropped
- Every upload writes a new storage path; the replaced blob is deleted only
  after commit, so an open download keeps reading one consistent version
- Deletion is hard
"""

import json
import mimetypes
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stash.config import get_settings
from stash.db.locks import account_lock
from stash.db.models import StoredFile, utcnow
from stash.digest import digest
from stash.errors import ApiError, ApiErrorCode, InvalidRequestError, NotFoundError
from stash.logging import get_logger
from stash.schemas.storage import FileDataOut, FileOut
from stash.services import usage as usage_service
from stash.services.buckets import file_to_out, get_live_bucket, validate_name
from stash.storage import BlobStoreBase, StagedBlob, StorageError, build_storage_path, iter_chunks

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Magic bytes for content sniffing when the name has no known extension
MAGIC_BYTES = (
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
    (b"OggS", "audio/ogg"),
    (b"ID3", "audio/mpeg"),
)

# Attempts to open a download whose blob was replaced between read and open
OPEN_ATTEMPTS = 2


@dataclass
class FileDownload:
    """A download whose headers are fixed before the first byte is read."""

    name: str
    size: int
    content_type: str
    chunks: Iterator[bytes]


def detect_content_type(name: str, head: bytes = b"") -> str:
    """Infer a content type from the file name, then the leading bytes."""
    guessed, _ = mimetypes.guess_type(name)
    if guessed:
        return guessed
    for signature, content_type in MAGIC_BYTES:
        if head.startswith(signature):
            return content_type
    return DEFAULT_CONTENT_TYPE


def _find_file(db: Session, bucket_id: UUID, name: str) -> StoredFile | None:
    return db.scalar(
        select(StoredFile).where(StoredFile.bucket_id == bucket_id, StoredFile.name == name)
    )


def get_file_row(db: Session, bucket_id: UUID, name: str) -> StoredFile:
    """Get a file by name within a bucket.

    Raises:
        NotFoundError: E_FILE_MISSING if there is none.
    """
    file = _find_file(db, bucket_id, name)
    if file is None:
        raise NotFoundError(ApiErrorCode.E_FILE_MISSING)
    return file


def _new_file(bucket_id: UUID, name: str) -> StoredFile:
    file_id = uuid4()
    now = utcnow()
    return StoredFile(
        id=file_id,
        uuid_digest=digest(file_id),
        bucket_id=bucket_id,
        name=name,
        content_type=detect_content_type(name),
        size=0,
        data={},
        created_at=now,
        updated_at=now,
    )


def create_file(db: Session, account_id: UUID, bucket_name: str, file_name: str) -> FileOut:
    """Create an empty file, or return the existing file unchanged.

    Raises:
        NotFoundError: E_BUCKET_MISSING if the bucket isn't live.
        ApiError: E_QUOTA_EXCEEDED if the file's overhead doesn't fit.
    """
    validate_name(file_name, "file name")

    with account_lock(db, account_id):
        bucket = get_live_bucket(db, account_id, bucket_name)
        file = _find_file(db, bucket.id, file_name)
        if file is not None:
            return file_to_out(file)

        usage_service.admit(db, account_id, 0)
        file = _new_file(bucket.id, file_name)
        db.add(file)
        db.flush()
        usage_service.charge(db, account_id, usage_service.file_charge(0))
        out = file_to_out(file)

    logger.info("file_created", file_digest_prefix=file.uuid_digest[:8])
    return out


def upload_file(
    db: Session,
    blobs: BlobStoreBase,
    account_id: UUID,
    bucket_name: str,
    file_name: str,
    chunks: Iterable[bytes],
) -> FileOut:
    """Create a file with content, or replace an existing file's content.

    Raises:
        NotFoundError: E_BUCKET_MISSING if the bucket isn't live.
        ApiError: E_QUOTA_EXCEEDED if the content doesn't fit the quota.
        ApiError: E_STORAGE_ERROR if the blob store fails.
    """
    validate_name(file_name, "file name")
    get_live_bucket(db, account_id, bucket_name)

    try:
        staged = blobs.stage(chunks)
    except StorageError as e:
        logger.error("upload_stage_failed", error=e.message)
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR) from e

    published_path: str | None = None
    replaced_path: str | None = None
    try:
        with account_lock(db, account_id):
            bucket = get_live_bucket(db, account_id, bucket_name)
            usage_service.admit(db, account_id, staged.size)

            file = _find_file(db, bucket.id, file_name)
            if file is None:
                file = _new_file(bucket.id, file_name)
                db.add(file)
                delta = usage_service.file_charge(staged.size)
            else:
                replaced_path = file.storage_path
                delta = staged.size - file.size

            storage_path = build_storage_path(file.id)
            file.storage_path = storage_path
            file.size = staged.size
            file.content_type = detect_content_type(file_name, staged.head)
            file.updated_at = utcnow()
            db.flush()

            _publish(blobs, staged, storage_path)
            published_path = storage_path
            usage_service.charge(db, account_id, delta)
            out = file_to_out(file)
    except Exception:
        if published_path is not None:
            blobs.delete_object(published_path)
        else:
            blobs.discard(staged)
        raise

    if replaced_path is not None:
        blobs.delete_object(replaced_path)

    logger.info(
        "file_uploaded",
        file_digest_prefix=file.uuid_digest[:8],
        size_bytes=staged.size,
        replaced=replaced_path is not None,
    )
    return out


def _publish(blobs: BlobStoreBase, staged: StagedBlob, storage_path: str) -> None:
    try:
        blobs.publish(staged, storage_path)
    except StorageError as e:
        logger.error("upload_publish_failed", error=e.message)
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR) from e


def get_file(db: Session, account_id: UUID, bucket_name: str, file_name: str) -> FileOut:
    """Get file metadata."""
    bucket = get_live_bucket(db, account_id, bucket_name)
    return file_to_out(get_file_row(db, bucket.id, file_name))


def open_download(db: Session, blobs: BlobStoreBase, file: StoredFile) -> FileDownload:
    """Open a file's content for streaming.

    The blob handle is opened here, so the returned size and content type
    always describe the bytes the iterator will yield.

    Raises:
        NotFoundError: E_FILE_MISSING if the file was deleted meanwhile.
        ApiError: E_STORAGE_ERROR if the blob can't be opened.
    """
    chunk_size = get_settings().download_chunk_bytes

    for attempt in range(OPEN_ATTEMPTS):
        if file.storage_path is None:
            return FileDownload(
                name=file.name, size=0, content_type=file.content_type, chunks=iter(())
            )
        try:
            handle = blobs.open_object(file.storage_path)
        except StorageError as e:
            if e.code != "E_STORAGE_MISSING" or attempt == OPEN_ATTEMPTS - 1:
                logger.error("download_open_failed", error=e.message)
                raise ApiError(ApiErrorCode.E_STORAGE_ERROR) from e
            # Replaced by a concurrent upload: read the row again
            db.expire(file)
            file = db.scalar(
                select(StoredFile).where(StoredFile.id == file.id)
            )
            if file is None:
                raise NotFoundError(ApiErrorCode.E_FILE_MISSING) from e
            continue

        return FileDownload(
            name=file.name,
            size=file.size,
            content_type=file.content_type,
            chunks=iter_chunks(handle, chunk_size),
        )

    raise ApiError(ApiErrorCode.E_STORAGE_ERROR)


def open_file_download(
    db: Session,
    blobs: BlobStoreBase,
    account_id: UUID,
    bucket_name: str,
    file_name: str,
) -> FileDownload:
    """Open one of the account's files for download."""
    bucket = get_live_bucket(db, account_id, bucket_name)
    return open_download(db, blobs, get_file_row(db, bucket.id, file_name))


def _coerce_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def update_file_data(
    db: Session,
    account_id: UUID,
    bucket_name: str,
    file_name: str,
    pairs: dict[str, Any],
) -> FileOut:
    """Merge key/value pairs into a file's data map.

    Existing keys are overwritten, new keys are added, others are untouched.
    Non-string values are stored as their JSON text ({"a": 1} stores "1").

    Raises:
        InvalidRequestError: If pairs is not a mapping or a key is unusable.
    """
    if not isinstance(pairs, dict):
        raise InvalidRequestError(message="Invalid data: must be a JSON object")
    for key in pairs:
        validate_name(key, "data key")

    with account_lock(db, account_id):
        bucket = get_live_bucket(db, account_id, bucket_name)
        file = get_file_row(db, bucket.id, file_name)
        merged = dict(file.data or {})
        merged.update({key: _coerce_value(value) for key, value in pairs.items()})
        file.data = merged
        file.updated_at = utcnow()
        db.flush()
        out = file_to_out(file)

    logger.info("file_data_updated", file_digest_prefix=file.uuid_digest[:8], key_count=len(pairs))
    return out


def data_key_out(file: StoredFile, key: str) -> FileDataOut:
    """File metadata carrying only one data key (None when unset)."""
    return FileDataOut(
        **file_to_out(file).model_dump(),
        data={key: (file.data or {}).get(key)},
    )


def get_file_data_key(
    db: Session, account_id: UUID, bucket_name: str, file_name: str, key: str
) -> FileDataOut:
    """Read a single data key of a file."""
    bucket = get_live_bucket(db, account_id, bucket_name)
    return data_key_out(get_file_row(db, bucket.id, file_name), key)


def delete_file(
    db: Session,
    blobs: BlobStoreBase,
    account_id: UUID,
    bucket_name: str,
    file_name: str,
) -> FileOut:
    """Hard-delete a file and release its usage.

    Raises:
        NotFoundError: E_FILE_MISSING if absent, including on a repeated delete.
    """
    with account_lock(db, account_id):
        bucket = get_live_bucket(db, account_id, bucket_name)
        file = get_file_row(db, bucket.id, file_name)
        out = file_to_out(file)
        storage_path = file.storage_path
        db.delete(file)
        db.flush()
        usage_service.charge(db, account_id, -usage_service.file_charge(file.size))

    if storage_path is not None:
        blobs.delete_object(storage_path)

    logger.info("file_deleted", file_digest_prefix=out.uuid_digest[:8])
    return out
