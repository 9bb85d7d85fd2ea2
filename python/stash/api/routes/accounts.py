"""Account and session routes.

Routes are transport-only:
- Read form fields (or the viewer from request.state)
- Call exactly one service function
- Return success_response(...) or raise ApiError

/signup, /signin, /password and /leave authenticate with credentials in the
form body; /logout uses the session from the Authorization header.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from stash.api.deps import get_blobs, get_db
from stash.auth.middleware import Viewer, get_viewer
from stash.responses import ok_response, success_response
from stash.services import accounts as accounts_service
from stash.services import sessions as sessions_service
from stash.storage import BlobStoreBase

router = APIRouter()

NameDigest = Annotated[str, Form(alias="nameDigest")]
PasswordDigest = Annotated[str, Form(alias="passwordDigest")]


@router.post("/signup")
def signup(
    name_digest: NameDigest,
    password_digest: PasswordDigest,
    invitation: Annotated[str, Form()],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create an account with a single-use invitation."""
    session_id = accounts_service.signup(db, name_digest, password_digest, invitation)
    return success_response("session", session_id)


@router.post("/signin")
def signin(
    name_digest: NameDigest,
    password_digest: PasswordDigest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Start a new session, ending any previous one."""
    session_id = accounts_service.signin(db, name_digest, password_digest)
    return success_response("session", session_id)


@router.post("/password")
def change_password(
    name_digest: NameDigest,
    password_digest: PasswordDigest,
    new_password_digest: Annotated[str, Form(alias="newPasswordDigest")],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Change the password; the returned session replaces the old one."""
    session_id = accounts_service.change_password(
        db, name_digest, password_digest, new_password_digest
    )
    return success_response("session", session_id)


@router.post("/logout")
def logout(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """End the current session."""
    sessions_service.revoke(db, viewer.account_id, viewer.session_id)
    return ok_response()


@router.post("/leave")
def leave(
    name_digest: NameDigest,
    password_digest: PasswordDigest,
    db: Annotated[Session, Depends(get_db)],
    blobs: Annotated[BlobStoreBase, Depends(get_blobs)],
) -> dict:
    """Delete the account and everything it owns."""
    accounts_service.destroy(db, blobs, name_digest, password_digest)
    return ok_response()
