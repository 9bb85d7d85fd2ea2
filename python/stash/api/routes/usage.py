"""Usage and quota routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stash.api.deps import get_db
from stash.auth.middleware import Viewer, get_viewer
from stash.responses import success_response
from stash.services import usage as usage_service

router = APIRouter()


@router.get("/usage")
def get_usage(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get stored and permitted bytes."""
    result = usage_service.get_usage(db, viewer.account_id)
    return success_response("usage", result.to_json())


@router.get("/quota/{grant_id}")
def redeem_grant(
    grant_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Redeem a quota grant."""
    result = usage_service.redeem(db, viewer.account_id, grant_id)
    return success_response("usage", result.to_json())
