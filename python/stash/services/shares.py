"""Share service layer.

A share is a public token exposing one bucket or one file without
authentication. Management (create, toggle, delete) is owner-scoped and
runs under the owner's account lock. Resolution is unauthenticated and
checks, in order:
1. the token exists and has the expected target type (else E_SHARE_MISSING)
2. the owner is not suspended (else E_ACCOUNT_SUSPENDED)
3. the share is active (else E_SHARE_INACTIVE)
4. the target is still there (else E_BUCKET_MISSING / E_FILE_MISSING)
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stash.db.locks import account_lock
from stash.db.models import Account, Bucket, Share, ShareTargetType, StoredFile
from stash.digest import new_uuid
from stash.errors import ApiErrorCode, ForbiddenError, NotFoundError
from stash.logging import get_logger, short_digest
from stash.schemas.storage import BucketOut, BucketShareOut, FileDataOut
from stash.services.buckets import bucket_to_out, get_live_bucket, share_to_out
from stash.services.files import FileDownload, data_key_out, get_file_row, open_download
from stash.services.redact import safe_kv
from stash.storage import BlobStoreBase

logger = get_logger(__name__)


@dataclass
class ResolvedShare:
    """A share that passed every resolution check, with its live target."""

    share: Share
    bucket: Bucket
    file: StoredFile | None = None


# =============================================================================
# Owner operations
# =============================================================================


def _create_share(
    db: Session, bucket: Bucket, target_type: ShareTargetType, target_id: UUID, name: str
) -> Share:
    share = Share(
        token=new_uuid(),
        bucket_id=bucket.id,
        target_type=target_type.value,
        target_id=target_id,
        name=name,
        active=True,
    )
    db.add(share)
    db.flush()
    return share


def create_bucket_share(db: Session, account_id: UUID, bucket_name: str) -> BucketShareOut:
    """Share a whole bucket."""
    with account_lock(db, account_id):
        bucket = get_live_bucket(db, account_id, bucket_name)
        share = _create_share(db, bucket, ShareTargetType.bucket, bucket.id, bucket.name)
        out = BucketShareOut(
            **bucket_to_out(db, bucket).model_dump(), share=share_to_out(share)
        )

    logger.info(
        "share_created",
        **safe_kv(target_type=share.target_type, token_prefix=short_digest(share.token)),
    )
    return out


def create_file_share(
    db: Session, account_id: UUID, bucket_name: str, file_name: str
) -> BucketShareOut:
    """Share one file of a bucket.

    Raises:
        NotFoundError: E_FILE_MISSING if the file doesn't exist.
    """
    with account_lock(db, account_id):
        bucket = get_live_bucket(db, account_id, bucket_name)
        file = get_file_row(db, bucket.id, file_name)
        share = _create_share(db, bucket, ShareTargetType.file, file.id, file.name)
        out = BucketShareOut(
            **bucket_to_out(db, bucket).model_dump(), share=share_to_out(share)
        )

    logger.info(
        "share_created",
        **safe_kv(target_type=share.target_type, token_prefix=short_digest(share.token)),
    )
    return out


def _get_bucket_share(db: Session, bucket: Bucket, token: str) -> Share:
    share = db.scalar(select(Share).where(Share.token == token, Share.bucket_id == bucket.id))
    if share is None:
        raise NotFoundError(ApiErrorCode.E_SHARE_MISSING)
    return share


def toggle_share(db: Session, account_id: UUID, bucket_name: str, token: str) -> BucketOut:
    """Flip a share between active and inactive.

    Returns:
        The bucket with its shares map keyed by token.

    Raises:
        NotFoundError: E_SHARE_MISSING if the token isn't a share of this bucket.
    """
    with account_lock(db, account_id):
        bucket = get_live_bucket(db, account_id, bucket_name)
        share = _get_bucket_share(db, bucket, token)
        share.active = not share.active
        db.flush()
        out = bucket_to_out(db, bucket)

    logger.info(
        "share_toggled",
        **safe_kv(token_prefix=short_digest(share.token), active=share.active),
    )
    return out


def delete_share(db: Session, account_id: UUID, bucket_name: str, token: str) -> BucketOut:
    """Remove a share permanently.

    Raises:
        NotFoundError: E_SHARE_MISSING if the token isn't a share of this bucket.
    """
    with account_lock(db, account_id):
        bucket = get_live_bucket(db, account_id, bucket_name)
        share = _get_bucket_share(db, bucket, token)
        db.delete(share)
        db.flush()
        out = bucket_to_out(db, bucket)

    logger.info("share_deleted", **safe_kv(token_prefix=short_digest(token)))
    return out


# =============================================================================
# Public resolution
# =============================================================================


def resolve_share(
    db: Session, token: str, target_type: ShareTargetType | None = None
) -> ResolvedShare:
    """Resolve a share token to its live target.

    Args:
        token: The share token.
        target_type: Required target type; a token of another type is treated
            as unknown.

    Raises:
        NotFoundError: E_SHARE_MISSING, E_BUCKET_MISSING or E_FILE_MISSING.
        ForbiddenError: E_ACCOUNT_SUSPENDED or E_SHARE_INACTIVE.
    """
    share = db.get(Share, token)
    if share is None or (target_type is not None and share.target_type != target_type.value):
        raise NotFoundError(ApiErrorCode.E_SHARE_MISSING)

    bucket = db.get(Bucket, share.bucket_id)
    owner = db.get(Account, bucket.owner_account_id) if bucket is not None else None
    if owner is not None and owner.suspended:
        raise ForbiddenError(ApiErrorCode.E_ACCOUNT_SUSPENDED)

    if not share.active:
        raise ForbiddenError(ApiErrorCode.E_SHARE_INACTIVE)

    if bucket is None or not bucket.is_live:
        raise NotFoundError(ApiErrorCode.E_BUCKET_MISSING)

    if share.target_type == ShareTargetType.file.value:
        file = db.get(StoredFile, share.target_id)
        if file is None:
            raise NotFoundError(ApiErrorCode.E_FILE_MISSING)
        return ResolvedShare(share=share, bucket=bucket, file=file)

    return ResolvedShare(share=share, bucket=bucket)


def get_shared_bucket(db: Session, token: str) -> BucketOut:
    """View a shared bucket. Other shares of the bucket are not listed."""
    resolved = resolve_share(db, token, ShareTargetType.bucket)
    return bucket_to_out(db, resolved.bucket, include_shares=False)


def open_shared_bucket_file(
    db: Session, blobs: BlobStoreBase, token: str, file_name: str
) -> FileDownload:
    """Download a file from a shared bucket."""
    resolved = resolve_share(db, token, ShareTargetType.bucket)
    return open_download(db, blobs, get_file_row(db, resolved.bucket.id, file_name))


def get_shared_bucket_file_key(
    db: Session, token: str, file_name: str, key: str
) -> FileDataOut:
    """Read one data key of a file in a shared bucket."""
    resolved = resolve_share(db, token, ShareTargetType.bucket)
    return data_key_out(get_file_row(db, resolved.bucket.id, file_name), key)


def open_shared_file(db: Session, blobs: BlobStoreBase, token: str) -> FileDownload:
    """Download a shared file."""
    resolved = resolve_share(db, token, ShareTargetType.file)
    return open_download(db, blobs, resolved.file)


def get_shared_file_key(db: Session, token: str, key: str) -> FileDataOut:
    """Read one data key of a shared file."""
    resolved = resolve_share(db, token, ShareTargetType.file)
    return data_key_out(resolved.file, key)
