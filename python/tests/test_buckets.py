"""Tests for the bucket service layer."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stash.db.models import Bucket
from stash.db.store import Store
from stash.digest import is_digest
from stash.errors import ApiError, ApiErrorCode
from stash.services import buckets as buckets_service
from stash.services import files as files_service
from tests.helpers import TestAccount


class TestCreateBucket:
    def test_returns_empty_view(self, db_session: Session, account: TestAccount):
        out = buckets_service.create_bucket(db_session, account.account_id, "photos")

        assert out.name == "photos"
        assert is_digest(out.uuid_digest)
        assert out.files == {}
        assert out.shares == {}

    def test_name_taken(self, db_session: Session, account: TestAccount):
        buckets_service.create_bucket(db_session, account.account_id, "photos")

        with pytest.raises(ApiError) as exc_info:
            buckets_service.create_bucket(db_session, account.account_id, "photos")

        assert exc_info.value.code == ApiErrorCode.E_BUCKET_EXISTS

    def test_same_name_for_different_accounts(
        self, db_session: Session, account: TestAccount, other_account: TestAccount
    ):
        first = buckets_service.create_bucket(db_session, account.account_id, "photos")
        second = buckets_service.create_bucket(db_session, other_account.account_id, "photos")

        assert first.uuid_digest != second.uuid_digest

    @pytest.mark.parametrize("name", ["", "   ", "x" * 256])
    def test_invalid_name(self, db_session: Session, account: TestAccount, name: str):
        with pytest.raises(ApiError) as exc_info:
            buckets_service.create_bucket(db_session, account.account_id, name)

        assert exc_info.value.code == ApiErrorCode.E_INVALID_REQUEST

    def test_name_with_slashes_and_quotes(self, db_session: Session, account: TestAccount):
        name = "Kevin's bucket/Sub folder"

        buckets_service.create_bucket(db_session, account.account_id, name)

        assert buckets_service.get_bucket(db_session, account.account_id, name).name == name


class TestDeleteBucket:
    def test_soft_delete_frees_name(self, db_session: Session, account: TestAccount):
        original = buckets_service.create_bucket(db_session, account.account_id, "photos")

        buckets_service.delete_bucket(db_session, account.account_id, "photos")
        with pytest.raises(ApiError) as exc_info:
            buckets_service.get_bucket(db_session, account.account_id, "photos")
        assert exc_info.value.code == ApiErrorCode.E_BUCKET_MISSING

        replacement = buckets_service.create_bucket(db_session, account.account_id, "photos")
        assert replacement.uuid_digest != original.uuid_digest
        assert replacement.files == {}
        # The deleted row is kept
        assert db_session.scalar(select(func.count(Bucket.id))) == 2

    def test_repeated_delete(self, db_session: Session, account: TestAccount):
        buckets_service.create_bucket(db_session, account.account_id, "photos")
        buckets_service.delete_bucket(db_session, account.account_id, "photos")

        with pytest.raises(ApiError) as exc_info:
            buckets_service.delete_bucket(db_session, account.account_id, "photos")

        assert exc_info.value.code == ApiErrorCode.E_BUCKET_MISSING

    def test_other_account_cannot_delete(
        self, db_session: Session, account: TestAccount, other_account: TestAccount
    ):
        buckets_service.create_bucket(db_session, account.account_id, "photos")

        with pytest.raises(ApiError) as exc_info:
            buckets_service.delete_bucket(db_session, other_account.account_id, "photos")

        assert exc_info.value.code == ApiErrorCode.E_BUCKET_MISSING


class TestListBuckets:
    def test_lists_live_buckets_by_name(self, db_session: Session, account: TestAccount):
        a = buckets_service.create_bucket(db_session, account.account_id, "a")
        buckets_service.create_bucket(db_session, account.account_id, "b")
        buckets_service.delete_bucket(db_session, account.account_id, "b")

        listing = buckets_service.list_buckets(db_session, account.account_id)

        assert list(listing) == ["a"]
        assert listing["a"].uuid_digest == a.uuid_digest

    def test_scoped_to_account(
        self, db_session: Session, account: TestAccount, other_account: TestAccount
    ):
        buckets_service.create_bucket(db_session, account.account_id, "mine")

        assert buckets_service.list_buckets(db_session, other_account.account_id) == {}


class TestBucketView:
    def test_files_keyed_by_name_without_data(self, db_session: Session, account: TestAccount):
        buckets_service.create_bucket(db_session, account.account_id, "b")
        files_service.create_file(db_session, account.account_id, "b", "notes.txt")
        files_service.update_file_data(db_session, account.account_id, "b", "notes.txt", {"k": "v"})

        view = buckets_service.get_bucket(db_session, account.account_id, "b").to_json()

        assert list(view["files"]) == ["notes.txt"]
        entry = view["files"]["notes.txt"]
        assert set(entry) == {"uuidDigest", "name", "size", "type", "created", "updated"}
        assert entry["type"] == "text/plain"
        assert "shares" in view

    def test_timestamps_reload_as_utc(
        self, store: Store, db_session: Session, account: TestAccount
    ):
        created = buckets_service.create_bucket(db_session, account.account_id, "b")

        with store.session() as db:
            reloaded = buckets_service.get_bucket(db, account.account_id, "b")

        assert reloaded.created.tzinfo is not None
        assert reloaded.created.utcoffset() == timedelta(0)
        assert reloaded.created == created.created
        assert reloaded.to_json()["created"] == created.to_json()["created"]
