"""Storage path building.

All content paths are built here:

    files/{fan_out}/{file_id}/{version}

- fan_out is the first two hex characters of the file id, so a local blob
  directory never holds more than 256 entries at the top level
- No leading slash, no account identifiers or file names
- Every upload gets a new version, so replaced content never shares a path
"""

from uuid import UUID

from stash.digest import new_uuid

FILES_ROOT = "files"
FAN_OUT_CHARS = 2


def build_storage_path(file_id: UUID | str, version: str | None = None) -> str:
    """Build the storage path for one version of a file's content.

    Args:
        file_id: Internal file id.
        version: Version token. A fresh one is generated if None.

    Returns:
        Storage path, e.g. "files/3f/3f2a.../<version>".
    """
    file_id = str(file_id)
    return f"{FILES_ROOT}/{file_id[:FAN_OUT_CHARS]}/{file_id}/{version or new_uuid()}"
