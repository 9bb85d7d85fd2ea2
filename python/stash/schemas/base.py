"""Shared Pydantic base for response schemas.

Fields are snake_case in Python and camelCase on the wire
(uuid_digest -> uuidDigest).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StashModel(BaseModel):
    """Base model for all response bodies."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        """Dump to a JSON-ready dict with wire field names."""
        return self.model_dump(mode="json", by_alias=True)
