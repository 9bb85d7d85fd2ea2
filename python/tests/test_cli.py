"""Tests for the administrative command line."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stash.cli import main
from stash.config import Environment
from stash.db.models import Account, Invitation, QuotaGrant, UsageRecord
from stash.db.store import Store
from stash.services import accounts as accounts_service
from stash.services import buckets as buckets_service
from stash.services import files as files_service
from stash.services import usage as usage_service
from tests.helpers import TestAccount


def _suspended(store: Store, name_digest: str) -> bool:
    with store.session() as db:
        return accounts_service.get_account(db, name_digest).suspended


class TestSuspendActivate:
    def test_suspend_by_name_digest(self, store: Store, account: TestAccount, capsys):
        assert main(["suspend", account.name_digest], store=store) == 0

        assert capsys.readouterr().out.strip().endswith(f"{account.name_digest} is now suspended")
        assert _suspended(store, account.name_digest)

    def test_suspend_by_bucket_and_file_digest(
        self, store: Store, db_session: Session, account: TestAccount
    ):
        bucket = buckets_service.create_bucket(db_session, account.account_id, "b")
        file = files_service.create_file(db_session, account.account_id, "b", "f")

        assert main(["suspend", bucket.uuid_digest], store=store) == 0
        assert _suspended(store, account.name_digest)

        assert main(["activate", file.uuid_digest], store=store) == 0
        assert not _suspended(store, account.name_digest)

    def test_unknown_identifier(self, store: Store, capsys):
        assert main(["suspend", "nothing"], store=store) == 1

        assert "ERROR: Account not found" in capsys.readouterr().err


class TestInviteAndGrant:
    def test_invite_prints_codes(self, store: Store, capsys):
        assert main(["invite", "--count", "3"], store=store) == 0

        codes = capsys.readouterr().out.split()
        assert len(set(codes)) == 3
        with store.session() as db:
            assert db.scalar(select(func.count()).select_from(Invitation)) == 3

    def test_grant_prints_redeemable_id(self, store: Store, account: TestAccount, capsys):
        assert main(["grant", "2048"], store=store) == 0
        grant_id = capsys.readouterr().out.strip()

        with store.session() as db:
            assert db.get(QuotaGrant, grant_id).byte_amount == 2048
            usage_service.redeem(db, account.account_id, grant_id)

    def test_grant_rejects_non_positive(self, store: Store, capsys):
        assert main(["grant", "0"], store=store) == 1
        assert "ERROR" in capsys.readouterr().err


class TestReconcile:
    def test_reconcile_fixes_drift(self, store: Store, account: TestAccount, capsys):
        with store.session() as db:
            db.get(UsageRecord, account.account_id).stored_bytes = 12345
            db.commit()

        assert main(["reconcile"], store=store) == 0

        assert "reconciled 1 accounts" in capsys.readouterr().out
        with store.session() as db:
            assert db.get(UsageRecord, account.account_id).stored_bytes == 0


class TestWipe:
    def test_wipe_everything(self, store: Store, account: TestAccount, capsys):
        assert main(["wipe"], store=store) == 0

        assert capsys.readouterr().out.startswith("wiped accounts")
        with store.session() as db:
            assert db.scalar(select(func.count()).select_from(Account)) == 0

    def test_wipe_unknown_namespace(self, store: Store, capsys):
        assert main(["wipe", "everything"], store=store) == 2
        assert "Unknown namespaces" in capsys.readouterr().err

    def test_wipe_refused_in_prod(self, store: Store, account: TestAccount, capsys):
        prod_store = Store(
            engine=store.engine,
            session_factory=store.session_factory,
            blobs=store.blobs,
            settings=store.settings.model_copy(update={"stash_env": Environment.PROD}),
        )

        assert main(["wipe"], store=prod_store) == 1

        assert "refuses" in capsys.readouterr().err
        with store.session() as db:
            assert db.scalar(select(func.count()).select_from(Account)) == 1


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            main([])
