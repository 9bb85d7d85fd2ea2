"""Log guard for credential-bearing values.

Never-log policy:
- Password digests (old or new)
- Session ids
- Share tokens, invitation codes and grant ids in full
- File content

Allowed (with suffix):
- _prefix: a short leading slice (see stash.logging.short_digest)
- _count, _bytes: sizes and counts
"""

import os

import structlog

FORBIDDEN_KEYS = frozenset(
    {
        "password",
        "password_digest",
        "new_password_digest",
        "session",
        "session_id",
        "token",
        "invitation",
        "grant_id",
        "content",
    }
)

REDACTED_SUFFIXES = ("_prefix", "_count", "_bytes")


def _has_redacted_suffix(key: str) -> bool:
    """Check if key ends with a recognized redacted suffix."""
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used
    without a redacted suffix. In staging/prod, logs a warning instead.

    Usage:
        logger.info("share_created", **safe_kv(
            target_type="file",
            token_prefix=short_digest(token),   # OK: _prefix suffix
            # token=token,                      # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for STASH_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.

    Returns:
        The same kwargs dict, after validation.

    Raises:
        ValueError: In local/test, if a forbidden key is used without redacted suffix.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("STASH_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        structlog.get_logger("stash.services.redact").warning(
            "safe_kv_violation", forbidden_keys=violations
        )
        for key in violations:
            kwargs.pop(key)

    return kwargs
