"""Account store.

Accounts are keyed by the digest of a name; the password digest a client
sends is stored only as digest(salt + password digest). Signup consumes a
single-use invitation in the same transaction that creates the account.

Administrative suspend/activate accept any identifier that names something
an account owns and resolve it to that account, trying in order: account
name digest, share token, bucket uuid digest, file uuid digest.
"""

import hmac

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stash.config import get_settings
from stash.db.locks import account_lock, get_account_locks
from stash.db.models import (
    Account,
    AccountSession,
    Bucket,
    Invitation,
    QuotaGrant,
    Share,
    StoredFile,
    UsageRecord,
    utcnow,
)
from stash.digest import digest, new_uuid
from stash.errors import (
    ApiError,
    ApiErrorCode,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from stash.logging import get_logger, short_digest
from stash.services import sessions as sessions_service
from stash.services.redact import safe_kv
from stash.storage import BlobStoreBase

logger = get_logger(__name__)


def _require(value: str | None, field: str) -> str:
    if not value:
        raise InvalidRequestError(message=f"Missing {field}")
    return value


def _hash_password(salt: str, password_digest: str) -> str:
    return digest(salt + password_digest)


def _password_matches(account: Account, password_digest: str) -> bool:
    expected = _hash_password(account.password_salt, password_digest)
    return hmac.compare_digest(expected.encode(), account.password_hash.encode())


def get_account(db: Session, name_digest: str) -> Account | None:
    return db.scalar(select(Account).where(Account.name_digest == name_digest))


def create_invitation(db: Session) -> str:
    """Issue a single-use signup invitation.

    Returns:
        The invitation code.
    """
    code = new_uuid()
    db.add(Invitation(code=code))
    db.commit()
    logger.info("invitation_created")
    return code


def signup(db: Session, name_digest: str, password_digest: str, invitation: str) -> str:
    """Create an account, its usage record and its first session.

    Returns:
        The session id.

    Raises:
        ForbiddenError: E_INVITATION_INVALID if the invitation is unknown or used.
        ConflictError: E_ACCOUNT_EXISTS if the name digest is taken.
    """
    _require(name_digest, "nameDigest")
    _require(password_digest, "passwordDigest")

    try:
        consumed = db.execute(
            update(Invitation)
            .where(Invitation.code == (invitation or ""), Invitation.consumed_at.is_(None))
            .values(consumed_at=utcnow())
        )
        if consumed.rowcount != 1:
            raise ForbiddenError(ApiErrorCode.E_INVITATION_INVALID)

        if get_account(db, name_digest) is not None:
            raise ConflictError(ApiErrorCode.E_ACCOUNT_EXISTS)

        salt = new_uuid()
        account = Account(
            name_digest=name_digest,
            password_salt=salt,
            password_hash=_hash_password(salt, password_digest),
        )
        db.add(account)
        db.flush()
        db.add(
            UsageRecord(
                account_id=account.id,
                stored_bytes=0,
                quota_bytes=get_settings().base_quota_bytes,
            )
        )
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(ApiErrorCode.E_ACCOUNT_EXISTS) from e
    except Exception:
        db.rollback()
        raise

    # Commits the account, usage record and consumed invitation with the session
    session_id = sessions_service.issue(db, account.id)
    logger.info("account_created", **safe_kv(account_prefix=short_digest(name_digest)))
    return session_id


def verify(db: Session, name_digest: str, password_digest: str) -> Account:
    """Check credentials.

    Raises:
        NotFoundError: E_ACCOUNT_NOT_FOUND if there is no such account.
        ForbiddenError: E_ACCOUNT_SUSPENDED if the account is suspended.
        ApiError: E_CREDENTIAL_MISMATCH if the password digest is wrong.
    """
    _require(name_digest, "nameDigest")
    _require(password_digest, "passwordDigest")

    account = get_account(db, name_digest)
    if account is None:
        raise NotFoundError(ApiErrorCode.E_ACCOUNT_NOT_FOUND)
    if account.suspended:
        raise ForbiddenError(ApiErrorCode.E_ACCOUNT_SUSPENDED)
    if not _password_matches(account, password_digest):
        logger.info("credential_mismatch", **safe_kv(account_prefix=short_digest(name_digest)))
        raise ApiError(ApiErrorCode.E_CREDENTIAL_MISMATCH)
    return account


def signin(db: Session, name_digest: str, password_digest: str) -> str:
    """Verify credentials and issue a new session (revoking the old one)."""
    account = verify(db, name_digest, password_digest)
    return sessions_service.issue(db, account.id)


def change_password(
    db: Session, name_digest: str, old_password_digest: str, new_password_digest: str
) -> str:
    """Replace the password and issue a new session in one transaction.

    Returns:
        The new session id. The previous session stops validating.
    """
    _require(new_password_digest, "newPasswordDigest")
    account = verify(db, name_digest, old_password_digest)

    with account_lock(db, account.id) as locked:
        salt = new_uuid()
        locked.password_salt = salt
        locked.password_hash = _hash_password(salt, new_password_digest)
        session_id = sessions_service.replace_session(db, locked.id)

    logger.info("password_changed", **safe_kv(account_prefix=short_digest(name_digest)))
    return session_id


def resolve_owner(db: Session, identifier: str) -> Account:
    """Find the account that owns whatever the identifier names.

    Raises:
        NotFoundError: E_ACCOUNT_NOT_FOUND if nothing matches.
    """
    account = get_account(db, identifier)
    if account is not None:
        return account

    owner_queries = (
        select(Account)
        .join(Bucket, Bucket.owner_account_id == Account.id)
        .join(Share, Share.bucket_id == Bucket.id)
        .where(Share.token == identifier),
        select(Account)
        .join(Bucket, Bucket.owner_account_id == Account.id)
        .where(Bucket.uuid_digest == identifier),
        select(Account)
        .join(Bucket, Bucket.owner_account_id == Account.id)
        .join(StoredFile, StoredFile.bucket_id == Bucket.id)
        .where(StoredFile.uuid_digest == identifier),
    )
    for query in owner_queries:
        account = db.scalar(query)
        if account is not None:
            return account

    raise NotFoundError(ApiErrorCode.E_ACCOUNT_NOT_FOUND)


def set_suspended(db: Session, identifier: str, suspended: bool) -> Account:
    """Suspend or activate the owning account. Idempotent."""
    _require(identifier, "identifier")
    owner = resolve_owner(db, identifier)

    with account_lock(db, owner.id) as account:
        account.suspended = suspended

    logger.info(
        "account_suspended" if suspended else "account_activated",
        **safe_kv(account_prefix=short_digest(account.name_digest)),
    )
    return account


def suspend(db: Session, identifier: str) -> Account:
    return set_suspended(db, identifier, True)


def activate(db: Session, identifier: str) -> Account:
    return set_suspended(db, identifier, False)


def destroy(
    db: Session, blobs: BlobStoreBase, name_digest: str, password_digest: str
) -> None:
    """Delete an account and everything it owns.

    Shares, files, buckets (live and soft-deleted), the session and the
    usage record go in the same transaction; blobs are removed after commit.
    Grants the account redeemed stay redeemed.
    """
    account = verify(db, name_digest, password_digest)
    account_id = account.id

    with account_lock(db, account_id):
        bucket_ids = select(Bucket.id).where(Bucket.owner_account_id == account_id)
        storage_paths = [
            path
            for path in db.scalars(
                select(StoredFile.storage_path).where(StoredFile.bucket_id.in_(bucket_ids))
            )
            if path is not None
        ]
        db.execute(delete(Share).where(Share.bucket_id.in_(bucket_ids)))
        db.execute(delete(StoredFile).where(StoredFile.bucket_id.in_(bucket_ids)))
        db.execute(delete(Bucket).where(Bucket.owner_account_id == account_id))
        db.execute(delete(AccountSession).where(AccountSession.account_id == account_id))
        db.execute(delete(UsageRecord).where(UsageRecord.account_id == account_id))
        db.execute(
            update(QuotaGrant)
            .where(QuotaGrant.redeemed_by_account_id == account_id)
            .values(redeemed_by_account_id=None)
        )
        db.execute(delete(Account).where(Account.id == account_id))

    for path in storage_paths:
        blobs.delete_object(path)
    get_account_locks(db).forget(account_id)

    logger.info(
        "account_destroyed",
        **safe_kv(account_prefix=short_digest(name_digest), file_count=len(storage_paths)),
    )
