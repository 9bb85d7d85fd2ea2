"""Pydantic schemas for API responses."""

from stash.schemas.account import UsageOut
from stash.schemas.storage import (
    BucketOut,
    BucketShareOut,
    BucketSummaryOut,
    FileDataOut,
    FileOut,
    ShareOut,
    ShareType,
)

__all__ = [
    "UsageOut",
    "BucketOut",
    "BucketShareOut",
    "BucketSummaryOut",
    "FileDataOut",
    "FileOut",
    "ShareOut",
    "ShareType",
]
