"""X-Request-ID middleware for request correlation and access logging.

Every response carries X-Request-ID: the caller's own id when it is a
usable token, a fresh uuid4 otherwise. The id is bound to the logging
context for the duration of the request, so engine log lines and the
single access line share it, and error bodies echo it back.

Middleware Ordering (Critical):
- Must be added LAST to run FIRST (FastAPI middleware runs in reverse order)
- This ensures auth failures still carry X-Request-ID and a logged request_id
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from stash.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"

# UUIDs match this too; ids are at most 128 ASCII characters
VALID_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

logger = get_logger(__name__)


def is_valid_request_id(value: str) -> bool:
    """Check if value is a usable request ID (UUID or short token, <= 128 bytes)."""
    return bool(VALID_REQUEST_ID_PATTERN.match(value))


def normalize_request_id(value: str) -> str:
    """Lowercase UUIDs; keep other valid IDs as-is."""
    if UUID_PATTERN.match(value):
        return value.lower()
    return value


def resolve_request_id(incoming: str | None) -> str:
    """Pick the id for a request from its X-Request-ID header, if any."""
    if incoming and is_valid_request_id(incoming):
        return normalize_request_id(incoming)
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns request ids and writes one access log line per request.

    Args:
        app: The ASGI application.
        log_requests: If True, log an access entry for each request. Server
            errors are logged at warning level.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.monotonic()
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        # Raw path only; query strings never reach the logs
        set_request_context(request_id, path=request.url.path, method=request.method)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            if self.log_requests:
                log = logger.warning if response.status_code >= 500 else logger.info
                log(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                )
            return response
        except Exception:
            # unhandled_exception_handler renders the response
            logger.exception("request_failed")
            raise
        finally:
            clear_request_context()
