"""Share management routes (owner side)."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stash.api.deps import get_bucket_name, get_db
from stash.auth.middleware import Viewer, get_viewer
from stash.responses import success_response
from stash.services import shares as shares_service

router = APIRouter()


@router.post("/bucket/{bucket}/share/{token}/toggle")
def toggle_share(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    token: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Flip a share between active and inactive."""
    result = shares_service.toggle_share(db, viewer.account_id, bucket_name, token)
    return success_response("bucket", result.to_json())


@router.post("/bucket/{bucket}/share/{token}/delete")
def delete_share(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    token: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Remove a share."""
    result = shares_service.delete_share(db, viewer.account_id, bucket_name, token)
    return success_response("bucket", result.to_json())


@router.post("/bucket/{bucket}/share")
def share_bucket(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a public share link for the whole bucket."""
    result = shares_service.create_bucket_share(db, viewer.account_id, bucket_name)
    return success_response("bucket", result.to_json())
