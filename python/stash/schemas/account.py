"""Account usage Pydantic schemas."""

from stash.schemas.base import StashModel

__all__ = ["UsageOut"]


class UsageOut(StashModel):
    """Stored and permitted bytes for an account."""

    stored: int
    quota: int
