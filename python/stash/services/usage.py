"""Quota and usage accounting.

Per account:
- stored = sum over held files of (size + STORAGE_OVERHEAD_BYTES)
- quota = BASE_QUOTA_BYTES + sum of redeemed grant amounts

Files inside soft-deleted buckets are still held. The usage row is kept in
step by charge() on every storage mutation; recompute() derives the same
numbers from scratch, and reconcile() rewrites the row when they differ.

admit(), charge() and the grant conditional update expect the caller to
hold the account lock; redeem() and reconcile() take it themselves.
"""

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from stash.config import get_settings
from stash.db.locks import account_lock
from stash.db.models import Account, Bucket, QuotaGrant, StoredFile, UsageRecord, utcnow
from stash.digest import new_uuid
from stash.errors import ApiError, ApiErrorCode, ConflictError, InvalidRequestError, NotFoundError
from stash.logging import get_logger, short_digest
from stash.schemas.account import UsageOut
from stash.services.redact import safe_kv

logger = get_logger(__name__)


def file_charge(size: int) -> int:
    """Bytes a file of the given size counts against its owner."""
    return size + get_settings().storage_overhead_bytes


def recompute(db: Session, account_id: UUID) -> UsageOut:
    """Derive stored and quota bytes from files and redeemed grants."""
    overhead = get_settings().storage_overhead_bytes
    file_count, total_size = db.execute(
        select(func.count(StoredFile.id), func.coalesce(func.sum(StoredFile.size), 0))
        .join(Bucket, Bucket.id == StoredFile.bucket_id)
        .where(Bucket.owner_account_id == account_id)
    ).one()
    granted = db.scalar(
        select(func.coalesce(func.sum(QuotaGrant.byte_amount), 0)).where(
            QuotaGrant.redeemed_by_account_id == account_id
        )
    )
    return UsageOut(
        stored=int(total_size) + int(file_count) * overhead,
        quota=get_settings().base_quota_bytes + int(granted),
    )


def _get_record(db: Session, account_id: UUID) -> UsageRecord:
    """Load the usage row, rebuilding it if it is missing."""
    record = db.get(UsageRecord, account_id, populate_existing=True)
    if record is None:
        derived = recompute(db, account_id)
        record = UsageRecord(
            account_id=account_id, stored_bytes=derived.stored, quota_bytes=derived.quota
        )
        db.add(record)
        db.flush()
    return record


def get_usage(db: Session, account_id: UUID) -> UsageOut:
    """Get the account's stored and permitted bytes."""
    record = db.get(UsageRecord, account_id)
    if record is None:
        return recompute(db, account_id)
    return UsageOut(stored=record.stored_bytes, quota=record.quota_bytes)


def admit(db: Session, account_id: UUID, incoming_bytes: int) -> None:
    """Check that new content fits the account's quota.

    Ok iff stored + incoming + STORAGE_OVERHEAD_BYTES <= quota.

    Raises:
        ApiError: E_QUOTA_EXCEEDED otherwise.
    """
    record = _get_record(db, account_id)
    overhead = get_settings().storage_overhead_bytes
    if record.stored_bytes + incoming_bytes + overhead > record.quota_bytes:
        logger.info(
            "quota_exceeded",
            stored_bytes=record.stored_bytes,
            incoming_bytes=incoming_bytes,
            quota_bytes=record.quota_bytes,
        )
        raise ApiError(ApiErrorCode.E_QUOTA_EXCEEDED)


def charge(db: Session, account_id: UUID, delta_bytes: int) -> UsageRecord:
    """Apply a signed change to the account's stored bytes (floored at zero)."""
    record = _get_record(db, account_id)
    record.stored_bytes = max(0, record.stored_bytes + delta_bytes)
    record.updated_at = utcnow()
    db.flush()
    return record


def create_grant(db: Session, byte_amount: int) -> str:
    """Issue a quota grant out-of-band.

    Returns:
        The grant id to hand to the account holder.

    Raises:
        InvalidRequestError: If byte_amount is not positive.
    """
    if byte_amount <= 0:
        raise InvalidRequestError(message="Grant amount must be positive")

    grant_id = new_uuid()
    db.add(QuotaGrant(id=grant_id, byte_amount=byte_amount))
    db.commit()
    logger.info("grant_created", amount_bytes=byte_amount)
    return grant_id


def redeem(db: Session, account_id: UUID, grant_id: str) -> UsageOut:
    """Redeem a grant once, raising the account's quota by its amount.

    Raises:
        NotFoundError: E_GRANT_NOT_FOUND if the grant doesn't exist.
        ConflictError: E_GRANT_ALREADY_REDEEMED on any later redemption.
    """
    with account_lock(db, account_id) as account:
        amount = db.scalar(select(QuotaGrant.byte_amount).where(QuotaGrant.id == grant_id))
        if amount is None:
            raise NotFoundError(ApiErrorCode.E_GRANT_NOT_FOUND)

        result = db.execute(
            update(QuotaGrant)
            .where(QuotaGrant.id == grant_id, QuotaGrant.redeemed_at.is_(None))
            .values(redeemed_at=utcnow(), redeemed_by_account_id=account_id)
        )
        if result.rowcount != 1:
            raise ConflictError(ApiErrorCode.E_GRANT_ALREADY_REDEEMED)

        record = _get_record(db, account_id)
        record.quota_bytes += amount
        record.updated_at = utcnow()
        usage = UsageOut(stored=record.stored_bytes, quota=record.quota_bytes)

    logger.info(
        "grant_redeemed",
        **safe_kv(account_prefix=short_digest(account.name_digest), amount_bytes=amount),
    )
    return usage


def reconcile(db: Session, account_id: UUID) -> UsageOut:
    """Rewrite the usage row from its recomputation, logging any drift."""
    with account_lock(db, account_id) as account:
        derived = recompute(db, account_id)
        record = _get_record(db, account_id)
        if (record.stored_bytes, record.quota_bytes) != (derived.stored, derived.quota):
            logger.warning(
                "usage_drift_corrected",
                account_prefix=short_digest(account.name_digest),
                stored_bytes=record.stored_bytes,
                expected_stored_bytes=derived.stored,
                quota_bytes=record.quota_bytes,
                expected_quota_bytes=derived.quota,
            )
            record.stored_bytes = derived.stored
            record.quota_bytes = derived.quota
            record.updated_at = utcnow()
    return derived


def reconcile_all(db: Session) -> int:
    """Reconcile every account.

    Returns:
        Number of accounts checked.
    """
    account_ids = db.scalars(select(Account.id).order_by(Account.created_at)).all()
    for account_id in account_ids:
        reconcile(db, account_id)
    return len(account_ids)
