"""Database module for Stash.

Provides engine creation, session management, the
per-account lock registry, ORM models and the Store handle.
"""

from stash.db.engine import create_db_engine
from stash.db.locks import AccountLocks, account_lock
from stash.db.models import (
    Account,
    AccountSession,
    Base,
    Bucket,
    Invitation,
    QuotaGrant,
    Share,
    ShareTargetType,
    StoredFile,
    UsageRecord,
)
from stash.db.session import create_session_factory, get_db
from stash.db.store import NAMESPACES, Store, create_store

__all__ = [
    # Engine and session
    "create_db_engine",
    "create_session_factory",
    "get_db",
    # Locking
    "AccountLocks",
    "account_lock",
    # Store
    "NAMESPACES",
    "Store",
    "create_store",
    # Base
    "Base",
    # Enums
    "ShareTargetType",
    # Models
    "Account",
    "AccountSession",
    "Invitation",
    "QuotaGrant",
    "UsageRecord",
    "Bucket",
    "StoredFile",
    "Share",
]
