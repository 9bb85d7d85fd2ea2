"""Test helpers for accounts and common test operations.

Provides:
- Account creation through the real signup path
- HTTP Basic credentials for test requests
- Small content fixtures
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from stash.digest import digest
from stash.services import accounts as accounts_service

# Smallest byte string the magic-byte sniffer recognises as a PDF
PDF_BYTES = b"%PDF-1.4\n" + b"0" * 1024 + b"\n%%EOF\n"


@dataclass
class TestAccount:
    """Credentials and ids of an account created for a test."""

    __test__ = False

    name: str
    name_digest: str
    password_digest: str
    session: str
    account_id: UUID

    @property
    def auth(self) -> tuple[str, str]:
        """HTTP Basic credentials for TestClient requests."""
        return (self.name_digest, self.session)


def create_account(db: Session, name: str, password: str = "correct horse") -> TestAccount:
    """Create an account via invitation + signup.

    Returns:
        The account's digests, its session and its internal id.
    """
    name_digest = digest(name)
    password_digest = digest(password)
    invitation = accounts_service.create_invitation(db)
    session = accounts_service.signup(db, name_digest, password_digest, invitation)
    account = accounts_service.get_account(db, name_digest)
    return TestAccount(
        name=name,
        name_digest=name_digest,
        password_digest=password_digest,
        session=session,
        account_id=account.id,
    )


def signup_over_http(
    client: TestClient, db: Session, name: str, password: str = "correct horse"
) -> TestAccount:
    """Create an account through POST /signup."""
    name_digest = digest(name)
    password_digest = digest(password)
    invitation = accounts_service.create_invitation(db)
    response = client.post(
        "/signup",
        data={
            "nameDigest": name_digest,
            "passwordDigest": password_digest,
            "invitation": invitation,
        },
    )
    assert response.status_code == 200, response.text
    account = accounts_service.get_account(db, name_digest)
    return TestAccount(
        name=name,
        name_digest=name_digest,
        password_digest=password_digest,
        session=response.json()["session"],
        account_id=account.id,
    )
