"""Bucket, file and share Pydantic schemas.

Only digests of internal ids appear here. Share tokens are exposed as
"uuid" because the token is the caller-held identifier.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from stash.schemas.base import StashModel

ShareType = Literal["bucket", "file"]

__all__ = [
    "ShareType",
    "FileOut",
    "FileDataOut",
    "ShareOut",
    "BucketOut",
    "BucketShareOut",
    "BucketSummaryOut",
]


class FileOut(StashModel):
    """File metadata. The data map is never included."""

    uuid_digest: str
    name: str
    size: int
    type: str
    created: datetime
    updated: datetime


class FileDataOut(FileOut):
    """File metadata plus exactly the requested data key."""

    data: dict[str, str | None]


class ShareOut(StashModel):
    """Public share link."""

    uuid: str
    type: ShareType
    name: str
    active: bool
    created: datetime


class BucketOut(StashModel):
    """Bucket with its files keyed by name.

    shares is None (and omitted) when the bucket is viewed through a share.
    """

    uuid_digest: str
    name: str
    created: datetime
    files: dict[str, FileOut] = Field(default_factory=dict)
    shares: dict[str, ShareOut] | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BucketShareOut(BucketOut):
    """Bucket plus the share that was just created in it."""

    share: ShareOut


class BucketSummaryOut(StashModel):
    """Entry of the bucket listing."""

    uuid_digest: str
    created: datetime
