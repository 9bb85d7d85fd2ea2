"""Session manager.

One session row per account (sessions.account_id is the primary key):
- issue() replaces the row's session id in place, which invalidates the
  previous id in the same write
- validate() compares the presented id with the stored one in constant time
- revoke() deletes the row only if it still holds the presented id

issue() and revoke() run inside the account's lock domain.
"""

import hmac
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from stash.db.locks import account_lock
from stash.db.models import Account, AccountSession, utcnow
from stash.digest import new_uuid
from stash.errors import ApiError, ApiErrorCode, ForbiddenError
from stash.logging import get_logger, short_digest
from stash.services.redact import safe_kv

logger = get_logger(__name__)


def replace_session(db: Session, account_id: UUID) -> str:
    """Swap in a fresh session id for an account.

    Caller must hold the account lock and commit.

    Returns:
        The new session id.
    """
    session_id = new_uuid()
    row = db.get(AccountSession, account_id)
    if row is None:
        db.add(AccountSession(account_id=account_id, session_id=session_id))
    else:
        row.session_id = session_id
        row.issued_at = utcnow()
    db.flush()
    return session_id


def issue(db: Session, account_id: UUID) -> str:
    """Issue a new session, revoking any prior one for the account.

    Returns:
        The new session id.
    """
    with account_lock(db, account_id) as account:
        session_id = replace_session(db, account_id)

    logger.info(
        "session_issued",
        **safe_kv(account_prefix=short_digest(account.name_digest)),
    )
    return session_id


def validate(db: Session, name_digest: str, session_id: str) -> Account:
    """Resolve a (name digest, session id) pair to its account.

    Raises:
        ApiError: E_SESSION_EXPIRED if there is no account, no session, or a
            different session id.
        ForbiddenError: E_ACCOUNT_SUSPENDED if the account is suspended.
    """
    row = db.execute(
        select(Account, AccountSession.session_id)
        .join(AccountSession, AccountSession.account_id == Account.id)
        .where(Account.name_digest == name_digest)
    ).first()

    if row is None:
        raise ApiError(ApiErrorCode.E_SESSION_EXPIRED)

    account, current_session_id = row
    if not hmac.compare_digest(current_session_id.encode(), session_id.encode()):
        raise ApiError(ApiErrorCode.E_SESSION_EXPIRED)

    if account.suspended:
        raise ForbiddenError(ApiErrorCode.E_ACCOUNT_SUSPENDED)

    return account


def revoke(db: Session, account_id: UUID, session_id: str) -> None:
    """End a session. A superseded session id leaves the current one alone."""
    with account_lock(db, account_id) as account:
        result = db.execute(
            delete(AccountSession).where(
                AccountSession.account_id == account_id,
                AccountSession.session_id == session_id,
            )
        )

    if result.rowcount:
        logger.info(
            "session_revoked",
            **safe_kv(account_prefix=short_digest(account.name_digest)),
        )
