"""Tests for database migrations.

Each test migrates its own SQLite file under tmp_path, so upgrading and
downgrading never touches the databases other tests use. Alembic runs in a
subprocess from the migrations/ directory, the way it runs in deployment.
"""

import os
import subprocess
import sys
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from stash.config import get_settings
from stash.db.engine import create_db_engine
from stash.db.models import Base
from stash.db.store import create_store
from stash.services import buckets as buckets_service
from stash.storage import FakeBlobStore
from tests.helpers import create_account

pytestmark = pytest.mark.slow


def get_migrations_dir() -> str:
    """Get the path to the migrations directory."""
    # From python/tests/, go up to repo root, then into migrations/
    tests_dir = os.path.dirname(os.path.abspath(__file__))
    python_dir = os.path.dirname(tests_dir)
    repo_root = os.path.dirname(python_dir)
    return os.path.join(repo_root, "migrations")


def run_alembic_command(database_url: str, command: str) -> subprocess.CompletedProcess:
    """Run an alembic command against database_url and return the result."""
    return subprocess.run(
        [sys.executable, "-m", "alembic"] + command.split(),
        capture_output=True,
        text=True,
        env={**os.environ, "DATABASE_URL": database_url},
        cwd=get_migrations_dir(),
    )


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'migrated.db'}"


@pytest.fixture
def migrated_url(database_url: str) -> str:
    """A database upgraded to head."""
    result = run_alembic_command(database_url, "upgrade head")
    if result.returncode != 0:
        pytest.fail(f"Migration upgrade failed: {result.stderr}")
    return database_url


class TestMigrationUpgradeDowngrade:
    """Tests that migrations apply and roll back cleanly."""

    def test_upgrade_creates_every_model_table(self, migrated_url: str):
        engine = create_engine(migrated_url)
        try:
            inspector = inspect(engine)
            tables = set(inspector.get_table_names()) - {"alembic_version"}

            assert tables == set(Base.metadata.tables)
            for name, table in Base.metadata.tables.items():
                columns = {column["name"] for column in inspector.get_columns(name)}
                assert columns == set(table.columns.keys()), name
        finally:
            engine.dispose()

    def test_downgrade_removes_everything(self, migrated_url: str):
        result = run_alembic_command(migrated_url, "downgrade base")

        assert result.returncode == 0, f"Downgrade failed: {result.stderr}"
        engine = create_engine(migrated_url)
        try:
            assert set(inspect(engine).get_table_names()) == {"alembic_version"}
        finally:
            engine.dispose()

    def test_upgrade_after_downgrade(self, migrated_url: str):
        run_alembic_command(migrated_url, "downgrade base")

        result = run_alembic_command(migrated_url, "upgrade head")

        assert result.returncode == 0, f"Upgrade failed: {result.stderr}"


class TestSchemaConstraints:
    """Tests that schema constraints are enforced by the migrated database."""

    def _insert_account(self, conn) -> str:
        account_id = uuid4().hex
        conn.execute(
            text(
                "INSERT INTO accounts (id, name_digest, password_salt, password_hash, "
                "created_at) VALUES (:id, :digest, 'salt', 'hash', CURRENT_TIMESTAMP)"
            ),
            {"id": account_id, "digest": uuid4().hex},
        )
        return account_id

    def _insert_bucket(self, conn, owner_id: str, name: str, deleted: bool = False) -> None:
        conn.execute(
            text(
                "INSERT INTO buckets (id, uuid_digest, owner_account_id, name, created_at, "
                "deleted_at) VALUES (:id, :digest, :owner, :name, CURRENT_TIMESTAMP, :deleted)"
            ),
            {
                "id": uuid4().hex,
                "digest": uuid4().hex,
                "owner": owner_id,
                "name": name,
                "deleted": "2026-01-01 00:00:00" if deleted else None,
            },
        )

    def test_live_bucket_names_unique_per_owner(self, migrated_url: str):
        engine = create_engine(migrated_url)
        try:
            with engine.begin() as conn:
                owner_id = self._insert_account(conn)
                self._insert_bucket(conn, owner_id, "photos")

            with pytest.raises(IntegrityError), engine.begin() as conn:
                self._insert_bucket(conn, owner_id, "photos")
        finally:
            engine.dispose()

    def test_deleted_buckets_free_their_name(self, migrated_url: str):
        engine = create_engine(migrated_url)
        try:
            with engine.begin() as conn:
                owner_id = self._insert_account(conn)
                self._insert_bucket(conn, owner_id, "photos", deleted=True)
                self._insert_bucket(conn, owner_id, "photos", deleted=True)
                self._insert_bucket(conn, owner_id, "photos")
                other_id = self._insert_account(conn)
                self._insert_bucket(conn, other_id, "photos")

            with engine.connect() as conn:
                count = conn.execute(text("SELECT COUNT(*) FROM buckets")).scalar_one()
            assert count == 4
        finally:
            engine.dispose()

    def test_grant_amount_must_be_positive(self, migrated_url: str):
        engine = create_engine(migrated_url)
        try:
            with pytest.raises(IntegrityError), engine.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO quota_grants (id, byte_amount, created_at) "
                        "VALUES ('g', 0, CURRENT_TIMESTAMP)"
                    )
                )
        finally:
            engine.dispose()


class TestServiceOnMigratedSchema:
    def test_services_run_without_create_all(self, migrated_url: str):
        store = create_store(
            get_settings(), engine=create_db_engine(migrated_url), blobs=FakeBlobStore()
        )
        try:
            with store.session() as db:
                account = create_account(db, "kevin")
                out = buckets_service.create_bucket(db, account.account_id, "photos")

                assert out.name == "photos"
                assert list(buckets_service.list_buckets(db, account.account_id)) == ["photos"]
        finally:
            store.dispose()
