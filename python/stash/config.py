"""Application settings loaded from environment variables.

Environment Configuration:
    STASH_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (defaults to a local SQLite file)

Blob Storage Configuration:
    STORAGE_BACKEND: Where file content lives (local | memory)
    STORAGE_PATH: Root directory for the local blob store

Accounting Configuration:
    BASE_QUOTA_BYTES: Bytes every new account may store before redeeming grants
    STORAGE_OVERHEAD_BYTES: Fixed per-file bookkeeping charge added to raw size

Transfer Configuration:
    UPLOAD_CHUNK_BYTES: Chunk size used when staging uploaded content
    DOWNLOAD_CHUNK_BYTES: Chunk size used when streaming content back out
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

API_VERSION = "1.0.0"


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class StorageBackend(str, Enum):
    """Blob store implementations."""

    LOCAL = "local"
    MEMORY = "memory"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - The in-memory blob backend is only allowed in local and test
    - Byte sizes and chunk sizes must be positive
    """

    stash_env: Environment = Field(default=Environment.LOCAL, alias="STASH_ENV")
    database_url: str = Field(default="sqlite:///./stash.db", alias="DATABASE_URL")

    storage_backend: StorageBackend = Field(default=StorageBackend.LOCAL, alias="STORAGE_BACKEND")
    storage_path: str = Field(default="./data", alias="STORAGE_PATH")

    base_quota_bytes: int = Field(default=1024 * 1024 * 1024, alias="BASE_QUOTA_BYTES")  # 1 GiB
    storage_overhead_bytes: int = Field(default=100, alias="STORAGE_OVERHEAD_BYTES")

    upload_chunk_bytes: int = Field(default=256 * 1024, alias="UPLOAD_CHUNK_BYTES")  # 256 KiB
    download_chunk_bytes: int = Field(default=256 * 1024, alias="DOWNLOAD_CHUNK_BYTES")
    max_name_length: int = Field(default=255, alias="MAX_NAME_LENGTH")

    log_json: bool = Field(default=True, alias="LOG_JSON")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Reject settings that would be unsafe or meaningless."""
        if self.stash_env in (Environment.STAGING, Environment.PROD):
            if self.storage_backend == StorageBackend.MEMORY:
                raise ValueError(
                    f"STORAGE_BACKEND=memory is not allowed for STASH_ENV={self.stash_env.value}"
                )

        for name in ("upload_chunk_bytes", "download_chunk_bytes", "max_name_length"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive")

        if self.base_quota_bytes < 0 or self.storage_overhead_bytes < 0:
            raise ValueError("BASE_QUOTA_BYTES and STORAGE_OVERHEAD_BYTES must not be negative")

        return self

    @property
    def allows_destructive_commands(self) -> bool:
        """Whether wipe-style maintenance commands may run."""
        return self.stash_env in (Environment.LOCAL, Environment.TEST)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
