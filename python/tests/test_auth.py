"""Tests for the authentication boundary.

Tests cover:
- Basic credential parsing
- Public path handling
- Rejection of missing, malformed and stale credentials
- Session replacement on signin, password change and logout
"""

import base64

import pytest
from fastapi.testclient import TestClient

from stash.auth.middleware import is_public_path, parse_basic_credentials
from tests.helpers import TestAccount


def _basic(value: str) -> str:
    return "Basic " + base64.b64encode(value.encode()).decode()


class TestParseBasicCredentials:
    def test_valid(self):
        assert parse_basic_credentials(_basic("name:session")) == ("name", "session")

    def test_password_may_contain_colon(self):
        assert parse_basic_credentials(_basic("name:a:b")) == ("name", "a:b")

    @pytest.mark.parametrize(
        "header",
        [
            None,
            "",
            "Bearer abc",
            "Basic",
            "Basic !!!not-base64!!!",
            _basic("no-separator"),
            _basic(":session"),
            _basic("name:"),
        ],
    )
    def test_malformed(self, header):
        assert parse_basic_credentials(header) is None


class TestPublicPaths:
    @pytest.mark.parametrize("path", ["/health", "/signup", "/signin", "/leave", "/password"])
    def test_public(self, path):
        assert is_public_path(path)

    def test_shared_prefix_is_public(self):
        assert is_public_path("/shared/file/abc")

    @pytest.mark.parametrize("path", ["/buckets", "/usage", "/logout", "/bucket/x"])
    def test_private(self, path):
        assert not is_public_path(path)


class TestAuthBoundary:
    """Unauthenticated requests are rejected before reaching routes."""

    def test_missing_credentials(self, client: TestClient):
        response = client.get("/buckets")

        assert response.status_code == 401
        assert response.json()["code"] == "E_UNAUTHENTICATED"
        assert response.headers["WWW-Authenticate"].startswith("Basic")

    def test_malformed_credentials(self, client: TestClient):
        response = client.get("/buckets", headers={"Authorization": "Basic %%%"})

        assert response.status_code == 401
        assert response.json()["code"] == "E_UNAUTHENTICATED"

    def test_wrong_session(self, client: TestClient, account: TestAccount):
        response = client.get("/buckets", auth=(account.name_digest, "not-the-session"))

        assert response.status_code == 401
        assert response.json()["code"] == "E_SESSION_EXPIRED"

    def test_valid_session(self, client: TestClient, account: TestAccount):
        response = client.get("/buckets", auth=account.auth)

        assert response.status_code == 200
        assert response.json() == {"buckets": {}}

    def test_public_path_needs_no_credentials(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestSessionLifecycle:
    """Only the most recently issued session authenticates."""

    def test_signin_replaces_session(self, client: TestClient, account: TestAccount):
        response = client.post(
            "/signin",
            data={"nameDigest": account.name_digest, "passwordDigest": account.password_digest},
        )
        assert response.status_code == 200
        new_session = response.json()["session"]
        assert new_session != account.session

        assert client.get("/usage", auth=account.auth).status_code == 401
        assert client.get("/usage", auth=(account.name_digest, new_session)).status_code == 200

    def test_signin_wrong_password(self, client: TestClient, account: TestAccount):
        response = client.post(
            "/signin",
            data={"nameDigest": account.name_digest, "passwordDigest": "wrong"},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "E_CREDENTIAL_MISMATCH"
        # A failed signin leaves the current session alone
        assert client.get("/usage", auth=account.auth).status_code == 200

    def test_signin_unknown_account(self, client: TestClient):
        response = client.post(
            "/signin", data={"nameDigest": "nobody", "passwordDigest": "whatever"}
        )

        assert response.status_code == 404
        assert response.json()["code"] == "E_ACCOUNT_NOT_FOUND"

    def test_logout_ends_session(self, client: TestClient, account: TestAccount):
        response = client.post("/logout", auth=account.auth)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert client.get("/usage", auth=account.auth).status_code == 401

    def test_password_change(self, client: TestClient, account: TestAccount):
        response = client.post(
            "/password",
            data={
                "nameDigest": account.name_digest,
                "passwordDigest": account.password_digest,
                "newPasswordDigest": "new-password-digest",
            },
        )
        assert response.status_code == 200
        new_session = response.json()["session"]

        assert client.get("/usage", auth=account.auth).status_code == 401
        assert client.get("/usage", auth=(account.name_digest, new_session)).status_code == 200

        old_password = client.post(
            "/signin",
            data={"nameDigest": account.name_digest, "passwordDigest": account.password_digest},
        )
        assert old_password.status_code == 401

        new_password = client.post(
            "/signin",
            data={"nameDigest": account.name_digest, "passwordDigest": "new-password-digest"},
        )
        assert new_password.status_code == 200
