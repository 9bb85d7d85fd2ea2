"""SQLAlchemy engine creation and configuration.

The engine is created once per Store and provides connection pooling for
all database operations.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from stash.config import get_settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine with the given URL.

    Args:
        database_url: SQLAlchemy connection string. If None, uses settings.

    Returns:
        Configured SQLAlchemy engine.

    Note:
        SQLite connections are shared across threads (the HTTP server runs
        sync routes in a threadpool) and have foreign keys switched on.
        An in-memory SQLite URL uses a single static connection so every
        session sees the same database.
    """
    if database_url is None:
        settings = get_settings()
        database_url = settings.database_url

    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(
            database_url,
            pool_pre_ping=True,
            echo=False,
        )

    kwargs: dict = {"connect_args": {"check_same_thread": False}, "echo": False}
    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine
