"""Store: the persistence handle shared by the transport and the CLI.

A Store bundles the database engine, its session factory (which carries the
per-account lock registry), the blob store and the settings it was built
from. It is created explicitly and passed to create_app(); nothing here is a
process global.
"""

from dataclasses import dataclass

from sqlalchemy import delete, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stash.config import Settings, get_settings
from stash.db.engine import create_db_engine
from stash.db.locks import LOCKS_INFO_KEY, AccountLocks
from stash.db.models import (
    Account,
    AccountSession,
    Base,
    Bucket,
    Invitation,
    QuotaGrant,
    Share,
    StoredFile,
    UsageRecord,
)
from stash.db.session import create_session_factory
from stash.logging import get_logger
from stash.storage import BlobStoreBase, get_blob_store

logger = get_logger(__name__)

NAMESPACES = ("accounts", "sessions", "buckets", "shares", "grants", "invitations")

# Wiping a namespace also wipes the rows that cannot outlive it
_NAMESPACE_MODELS: dict[str, set[type[Base]]] = {
    "accounts": {Account, AccountSession, UsageRecord, Bucket, StoredFile, Share},
    "sessions": {AccountSession},
    "buckets": {Bucket, StoredFile, Share},
    "shares": {Share},
    "grants": {QuotaGrant},
    "invitations": {Invitation},
}

# Children before parents
_DELETE_ORDER: tuple[type[Base], ...] = (
    Share,
    StoredFile,
    Bucket,
    AccountSession,
    UsageRecord,
    QuotaGrant,
    Invitation,
    Account,
)


@dataclass
class Store:
    """Database and blob storage for one deployment."""

    engine: Engine
    session_factory: sessionmaker[Session]
    blobs: BlobStoreBase
    settings: Settings

    @property
    def locks(self) -> AccountLocks:
        return self.session_factory.kw["info"][LOCKS_INFO_KEY]

    def session(self) -> Session:
        """Open a new database session."""
        return self.session_factory()

    def init(self) -> None:
        """Create the schema. Safe to call on an initialized database."""
        Base.metadata.create_all(self.engine)
        logger.info("store_initialized", backend=self.engine.url.get_backend_name())

    def destroy_all(self, *namespaces: str) -> None:
        """Delete every record in the given namespaces (all if none given).

        Repeated calls are no-ops. Wiping accounts or buckets also removes
        file content from the blob store.

        Raises:
            ValueError: If a namespace is unknown.
        """
        requested = namespaces or NAMESPACES
        unknown = [name for name in requested if name not in _NAMESPACE_MODELS]
        if unknown:
            raise ValueError(f"Unknown namespaces: {unknown}")

        models: set[type[Base]] = set()
        for name in requested:
            models |= _NAMESPACE_MODELS[name]

        with self.session() as db:
            if Account in models and QuotaGrant not in models:
                db.execute(update(QuotaGrant).values(redeemed_by_account_id=None))
            if StoredFile in models and UsageRecord not in models:
                db.execute(update(UsageRecord).values(stored_bytes=0))
            for model in _DELETE_ORDER:
                if model in models:
                    db.execute(delete(model))
            db.commit()

        if StoredFile in models:
            self.blobs.destroy_all()

        logger.info("store_destroyed", namespaces=list(requested))

    def dispose(self) -> None:
        """Release pooled database connections."""
        self.engine.dispose()


def create_store(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    blobs: BlobStoreBase | None = None,
) -> Store:
    """Build a Store from settings.

    Args:
        settings: Settings to use. If None, uses get_settings().
        engine: Pre-built engine (tests). Built from DATABASE_URL if None.
        blobs: Pre-built blob store (tests). Built from STORAGE_BACKEND if None.

    Returns:
        A Store. Call init() before first use of a fresh database.
    """
    if settings is None:
        settings = get_settings()
    if engine is None:
        engine = create_db_engine(settings.database_url)
    if blobs is None:
        blobs = get_blob_store(settings)

    return Store(
        engine=engine,
        session_factory=create_session_factory(engine),
        blobs=blobs,
        settings=settings,
    )
