"""Pytest configuration and fixtures for Stash tests.

Test isolation strategy:
- Every test gets its own Store: a fresh in-memory SQLite database
  (single static connection) and an in-memory FakeBlobStore
- Settings come from environment variables set per test; the settings
  cache is cleared around every test
- Service tests call engine functions with db_session directly
- Route tests use client, a TestClient over an app built with the test Store
- Tests needing real threads or files build their own Store on tmp_path
"""

from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from stash.app import add_request_id_middleware, create_app
from stash.config import clear_settings_cache, get_settings
from stash.db.engine import create_db_engine
from stash.db.store import Store, create_store
from stash.storage import FakeBlobStore
from tests.helpers import TestAccount, create_account

TEST_ENV = {
    "STASH_ENV": "test",
    "STORAGE_BACKEND": "memory",
    "DATABASE_URL": "sqlite://",
    "LOG_JSON": "false",
}


@pytest.fixture(autouse=True)
def test_settings(monkeypatch) -> Generator[None, None, None]:
    """Point settings at throwaway backends and reset the settings cache."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def store() -> Generator[Store, None, None]:
    """Provide a fresh, initialized Store for one test."""
    store = create_store(
        get_settings(),
        engine=create_db_engine("sqlite://"),
        blobs=FakeBlobStore(),
    )
    store.init()
    yield store
    store.dispose()


@pytest.fixture
def blobs(store: Store) -> FakeBlobStore:
    """The in-memory blob store behind the test Store."""
    return store.blobs


@pytest.fixture
def db_session(store: Store) -> Generator[Session, None, None]:
    """Provide a database session on the test Store."""
    with store.session() as session:
        yield session


@pytest.fixture
def app(store: Store) -> FastAPI:
    """Provide the full application (auth and request-id middleware) on the test Store."""
    app = create_app(store=store)
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def account(db_session: Session) -> TestAccount:
    """A signed-up account with an active session."""
    return create_account(db_session, "alice")


@pytest.fixture
def other_account(db_session: Session) -> TestAccount:
    """A second, unrelated account."""
    return create_account(db_session, "bob")
