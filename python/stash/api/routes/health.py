"""Health check and version endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from stash.api.deps import get_db
from stash.config import API_VERSION
from stash.responses import success_response

router = APIRouter()


@router.get("/health")
def health_check(db: Annotated[Session, Depends(get_db)]) -> dict:
    """Liveness check that also touches the database."""
    db.execute(text("SELECT 1"))
    return success_response("status", "ok")


@router.get("/version")
def version() -> dict:
    """API version constant."""
    return success_response("version", API_VERSION)
