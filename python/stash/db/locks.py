"""Per-account mutual exclusion.

Every mutation of an account's state (session, buckets, files, shares,
usage) runs inside account_lock(), which:
1. Acquires the in-process re-entrant lock for the account
2. Locks the account row with FOR UPDATE (no-op on SQLite)
3. Commits the session's transaction before releasing, or rolls it back

Reads take no lock.
"""

import threading
from collections.abc import Generator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stash.db.models import Account
from stash.errors import ApiErrorCode, NotFoundError

LOCKS_INFO_KEY = "account_locks"


class AccountLocks:
    """Registry of re-entrant locks keyed by account id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.RLock] = {}

    def get(self, account_id: UUID) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[account_id] = lock
            return lock

    def forget(self, account_id: UUID) -> None:
        """Drop the lock of an account that no longer exists."""
        with self._guard:
            self._locks.pop(account_id, None)

    def __len__(self) -> int:
        return len(self._locks)


def get_account_locks(db: Session) -> AccountLocks:
    """Get the lock registry shared by the session's factory."""
    locks = db.info.get(LOCKS_INFO_KEY)
    if locks is None:
        locks = AccountLocks()
        db.info[LOCKS_INFO_KEY] = locks
    return locks


@contextmanager
def account_lock(db: Session, account_id: UUID) -> Generator[Account, None, None]:
    """Hold the account's mutual-exclusion domain through commit.

    Yields the freshly loaded, row-locked account. The transaction is
    committed on normal exit and rolled back on exception, both while the
    lock is still held.

    Raises:
        NotFoundError: E_ACCOUNT_NOT_FOUND if the account vanished.
    """
    lock = get_account_locks(db).get(account_id)
    with lock:
        try:
            account = db.execute(
                select(Account)
                .where(Account.id == account_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if account is None:
                raise NotFoundError(ApiErrorCode.E_ACCOUNT_NOT_FOUND)
            yield account
            db.commit()
        except Exception:
            db.rollback()
            raise
