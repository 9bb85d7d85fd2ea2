"""Structured logging configuration using structlog.

Provides JSON-formatted logs with consistent context including:
- request_id: Correlation ID for request tracing
- account: Short prefix of the authenticated name digest (when available)
- path: Raw request path (never includes query string)
- method: HTTP method
- command: CLI command name (administrative invocations)
- timestamp: ISO8601 formatted timestamp

Usage:
    from stash.logging import get_logger, configure_logging

    # Configure once at startup
    configure_logging()

    # Get a logger for a module
    logger = get_logger(__name__)
    logger.info("something_happened", extra_field="value")
"""

import logging
import sys
from contextvars import ContextVar
from typing import TextIO

import structlog

# Context variables for request-scoped logging
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
account_var: ContextVar[str | None] = ContextVar("account", default=None)
path_var: ContextVar[str | None] = ContextVar("path", default=None)
method_var: ContextVar[str | None] = ContextVar("method", default=None)
command_var: ContextVar[str | None] = ContextVar("command", default=None)

# Digests are never logged in full
ACCOUNT_PREFIX_CHARS = 8


def add_request_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Add request context to all log entries.

    Injects all non-None ContextVar values into the log event dict.
    """
    context = {
        "request_id": request_id_var.get(),
        "account": account_var.get(),
        "path": path_var.get(),
        "method": method_var.get(),
        "command": command_var.get(),
    }
    for key, value in context.items():
        if value:
            event_dict[key] = value

    return event_dict


# Loggers that are chatty at INFO and say nothing about stash itself
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "multipart", "python_multipart")


def _processors() -> list:
    """Processors shared by structlog loggers and foreign stdlib records."""
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_request_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    json_format: bool = True,
    level: int = logging.INFO,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the root stdlib logger.

    Both structlog events and plain stdlib records (storage, uvicorn) go
    through the same renderer, so one request produces uniform lines.

    Args:
        json_format: JSON lines if True, console-friendly output otherwise.
        level: Root log level.
        stream: Where log lines go. Defaults to stdout; the CLI passes
            stderr so its own output stays parseable.
    """
    shared = _processors()
    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name.

    Args:
        name: Logger name (typically __name__).

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)


def short_digest(value: str | None) -> str | None:
    """Shorten a digest or token for log correlation."""
    if not value:
        return None
    return value[:ACCOUNT_PREFIX_CHARS]


def set_request_context(
    request_id: str | None,
    path: str | None = None,
    method: str | None = None,
) -> None:
    """Set request context for the current async context.

    Args:
        request_id: The request correlation ID.
        path: Raw request path (optional, no query string).
        method: HTTP method (optional).
    """
    request_id_var.set(request_id)
    if path is not None:
        path_var.set(path)
    if method is not None:
        method_var.set(method)


def set_account_context(name_digest: str | None) -> None:
    """Record which account the current request acts for."""
    account_var.set(short_digest(name_digest))


def set_command_context(command: str | None) -> None:
    """Record the administrative command being run."""
    command_var.set(command)


def clear_request_context() -> None:
    """Clear all request-scoped context at the end of a request."""
    request_id_var.set(None)
    account_var.set(None)
    path_var.set(None)
    method_var.set(None)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()
