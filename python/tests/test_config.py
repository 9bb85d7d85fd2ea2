"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from stash.config import (
    Environment,
    Settings,
    StorageBackend,
    clear_settings_cache,
    get_settings,
)


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "sqlite://",
        "STASH_ENV": "test",
        "STORAGE_BACKEND": "memory",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestDefaults:
    def test_accounting_defaults(self):
        s = _make_settings()
        assert s.base_quota_bytes == 1024 * 1024 * 1024
        assert s.storage_overhead_bytes == 100
        assert s.max_name_length == 255

    def test_environment_parsed(self):
        s = _make_settings()
        assert s.stash_env == Environment.TEST
        assert s.storage_backend == StorageBackend.MEMORY

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("BASE_QUOTA_BYTES", "4096")
        clear_settings_cache()
        assert get_settings().base_quota_bytes == 4096


class TestValidation:
    def test_memory_backend_rejected_in_prod(self):
        with pytest.raises(ValidationError, match="STORAGE_BACKEND=memory"):
            _make_settings(STASH_ENV="prod")

    def test_local_backend_allowed_in_prod(self):
        s = _make_settings(STASH_ENV="prod", STORAGE_BACKEND="local")
        assert s.stash_env == Environment.PROD

    def test_zero_chunk_size_rejected(self):
        with pytest.raises(ValidationError, match="UPLOAD_CHUNK_BYTES"):
            _make_settings(UPLOAD_CHUNK_BYTES=0)

    def test_negative_quota_rejected(self):
        with pytest.raises(ValidationError, match="BASE_QUOTA_BYTES"):
            _make_settings(BASE_QUOTA_BYTES=-1)

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            _make_settings(STASH_ENV="moon")


class TestDestructiveCommands:
    @pytest.mark.parametrize(
        "env,backend,allowed",
        [
            ("local", "memory", True),
            ("test", "memory", True),
            ("staging", "local", False),
            ("prod", "local", False),
        ],
    )
    def test_allowed_only_locally(self, env, backend, allowed):
        s = _make_settings(STASH_ENV=env, STORAGE_BACKEND=backend)
        assert s.allows_destructive_commands is allowed
