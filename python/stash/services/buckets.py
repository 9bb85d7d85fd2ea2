"""Bucket service layer.

All operations are scoped to the calling account and address buckets by
name. Deletion is soft: the row keeps its files (which still count toward
usage) and its name becomes free for a new bucket.
"""

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stash.config import get_settings
from stash.db.locks import account_lock
from stash.db.models import Bucket, Share, StoredFile, utcnow
from stash.digest import digest
from stash.errors import ApiErrorCode, ConflictError, InvalidRequestError, NotFoundError
from stash.logging import get_logger
from stash.schemas.storage import BucketOut, BucketSummaryOut, FileOut, ShareOut

logger = get_logger(__name__)


def validate_name(name: str, kind: str = "name") -> str:
    """Check a bucket, file or key name.

    Names must have 1 to MAX_NAME_LENGTH characters and must not be blank.

    Raises:
        InvalidRequestError: If the name is unusable.
    """
    max_length = get_settings().max_name_length
    if not name or not name.strip():
        raise InvalidRequestError(message=f"Invalid {kind}: must not be empty")
    if len(name) > max_length:
        raise InvalidRequestError(
            message=f"Invalid {kind}: must be at most {max_length} characters"
        )
    return name


def file_to_out(file: StoredFile) -> FileOut:
    return FileOut(
        uuid_digest=file.uuid_digest,
        name=file.name,
        size=file.size,
        type=file.content_type,
        created=file.created_at,
        updated=file.updated_at,
    )


def share_to_out(share: Share) -> ShareOut:
    return ShareOut(
        uuid=share.token,
        type=share.target_type,
        name=share.name,
        active=share.active,
        created=share.created_at,
    )


def list_files(db: Session, bucket_id: UUID) -> list[StoredFile]:
    return list(
        db.scalars(
            select(StoredFile).where(StoredFile.bucket_id == bucket_id).order_by(StoredFile.name)
        )
    )


def list_shares(db: Session, bucket_id: UUID) -> list[Share]:
    return list(
        db.scalars(
            select(Share).where(Share.bucket_id == bucket_id).order_by(Share.created_at)
        )
    )


def bucket_to_out(db: Session, bucket: Bucket, include_shares: bool = True) -> BucketOut:
    """Build the bucket view with its files map and (optionally) shares map."""
    shares = None
    if include_shares:
        shares = {share.token: share_to_out(share) for share in list_shares(db, bucket.id)}
    return BucketOut(
        uuid_digest=bucket.uuid_digest,
        name=bucket.name,
        created=bucket.created_at,
        files={file.name: file_to_out(file) for file in list_files(db, bucket.id)},
        shares=shares,
    )


def find_live_bucket(db: Session, account_id: UUID, name: str) -> Bucket | None:
    return db.scalar(
        select(Bucket).where(
            Bucket.owner_account_id == account_id,
            Bucket.name == name,
            Bucket.deleted_at.is_(None),
        )
    )


def get_live_bucket(db: Session, account_id: UUID, name: str) -> Bucket:
    """Get the account's live bucket with this name.

    Raises:
        NotFoundError: E_BUCKET_MISSING if there is none.
    """
    bucket = find_live_bucket(db, account_id, name)
    if bucket is None:
        raise NotFoundError(ApiErrorCode.E_BUCKET_MISSING)
    return bucket


def create_bucket(db: Session, account_id: UUID, name: str) -> BucketOut:
    """Create a bucket.

    Raises:
        ConflictError: E_BUCKET_EXISTS if a live bucket has this name.
    """
    validate_name(name, "bucket name")

    try:
        with account_lock(db, account_id):
            if find_live_bucket(db, account_id, name) is not None:
                raise ConflictError(ApiErrorCode.E_BUCKET_EXISTS)
            bucket_id = uuid4()
            bucket = Bucket(
                id=bucket_id,
                uuid_digest=digest(bucket_id),
                owner_account_id=account_id,
                name=name,
            )
            db.add(bucket)
            db.flush()
            out = bucket_to_out(db, bucket)
    except IntegrityError as e:
        raise ConflictError(ApiErrorCode.E_BUCKET_EXISTS) from e

    logger.info("bucket_created", bucket_digest_prefix=bucket.uuid_digest[:8])
    return out


def get_bucket(db: Session, account_id: UUID, name: str) -> BucketOut:
    """Get a live bucket with its files and shares."""
    return bucket_to_out(db, get_live_bucket(db, account_id, name))


def delete_bucket(db: Session, account_id: UUID, name: str) -> BucketOut:
    """Soft-delete a bucket.

    Raises:
        NotFoundError: E_BUCKET_MISSING if no live bucket has this name,
            including on a repeated delete.
    """
    with account_lock(db, account_id):
        bucket = get_live_bucket(db, account_id, name)
        bucket.deleted_at = utcnow()
        db.flush()
        out = bucket_to_out(db, bucket)

    logger.info("bucket_deleted", bucket_digest_prefix=bucket.uuid_digest[:8])
    return out


def list_buckets(db: Session, account_id: UUID) -> dict[str, BucketSummaryOut]:
    """List the account's live buckets keyed by name."""
    buckets = db.scalars(
        select(Bucket)
        .where(Bucket.owner_account_id == account_id, Bucket.deleted_at.is_(None))
        .order_by(Bucket.created_at)
    )
    return {
        bucket.name: BucketSummaryOut(uuid_digest=bucket.uuid_digest, created=bucket.created_at)
        for bucket in buckets
    }
