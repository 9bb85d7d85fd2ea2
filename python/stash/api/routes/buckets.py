"""Bucket routes.

A bucket name is one path segment; a "/" inside it arrives as %2F and
never splits the route.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stash.api.deps import get_bucket_name, get_db
from stash.auth.middleware import Viewer, get_viewer
from stash.responses import success_response
from stash.services import buckets as buckets_service

router = APIRouter()


@router.get("/buckets")
def list_buckets(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List live buckets keyed by name."""
    result = buckets_service.list_buckets(db, viewer.account_id)
    return success_response("buckets", {name: out.to_json() for name, out in result.items()})


@router.post("/bucket/{bucket}/delete")
def delete_bucket(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Delete a bucket. Its name can be reused afterwards."""
    result = buckets_service.delete_bucket(db, viewer.account_id, bucket_name)
    return success_response("bucket", result.to_json())


@router.post("/bucket/{bucket}")
def create_bucket(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a bucket."""
    result = buckets_service.create_bucket(db, viewer.account_id, bucket_name)
    return success_response("bucket", result.to_json())


@router.get("/bucket/{bucket}")
def get_bucket(
    bucket_name: Annotated[str, Depends(get_bucket_name)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get a bucket with its files and shares."""
    result = buckets_service.get_bucket(db, viewer.account_id, bucket_name)
    return success_response("bucket", result.to_json())
