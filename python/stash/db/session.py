"""Database session management.

Provides:
- Session factories that carry the per-account lock registry
- Request-scoped database sessions via get_db() dependency
"""

from collections.abc import Generator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stash.db.locks import LOCKS_INFO_KEY, AccountLocks


def create_session_factory(
    engine: Engine, locks: AccountLocks | None = None
) -> sessionmaker[Session]:
    """Create a session factory bound to an engine.

    Every session made by the factory shares one AccountLocks registry via
    Session.info, so services can serialize per-account mutations without
    process globals.

    Args:
        engine: SQLAlchemy engine.
        locks: Lock registry to share. A fresh one is created if None.

    Returns:
        Configured sessionmaker instance.
    """
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        info={LOCKS_INFO_KEY: locks if locks is not None else AccountLocks()},
    )


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency that provides a database session.

    The session comes from the Store attached to the application.

    Yields:
        A database session that is automatically closed after use.

    Usage:
        @router.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = request.app.state.store.session_factory()
    try:
        yield db
    finally:
        db.close()
