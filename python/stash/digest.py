"""Digest and identifier helpers.

digest() is the only transform between an internal identifier and the form
callers ever see. It is one-way: lookups go from a stored digest column to
the row, never from a digest back to an id.
"""

import hashlib
import re
import uuid

DIGEST_PATTERN = re.compile(r"^[0-9a-f]{64}$")
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


def digest(value: str | uuid.UUID) -> str:
    """SHA-256 hex digest of a string or UUID.

    Stable: same input always produces same output.

    Args:
        value: Text or identifier to digest.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(str(value).encode("utf-8")).hexdigest()


def new_uuid() -> str:
    """Generate a random UUID4 string (tokens, codes, grant ids)."""
    return str(uuid.uuid4())


def is_digest(value: object) -> bool:
    """Check whether value looks like a digest() output."""
    return isinstance(value, str) and bool(DIGEST_PATTERN.match(value))


def is_uuid(value: object) -> bool:
    """Check whether value is a canonical lowercase UUID string."""
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))
