"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware for HTTP Basic session verification
- get_viewer: Dependency for accessing the authenticated account

Credentials are HTTP Basic with username = name digest and
password = session id.
"""

import base64
import binascii
import logging
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from stash.errors import ApiError, ApiErrorCode
from stash.logging import set_account_context
from stash.responses import error_response

logger = logging.getLogger(__name__)

# Header names
AUTHORIZATION_HEADER = "authorization"
WWW_AUTHENTICATE = 'Basic realm="stash"'

# Paths that don't require authentication
PUBLIC_PATHS = {
    "/health",
    "/version",
    "/signup",
    "/signin",
    "/password",
    "/leave",
    "/docs",
    "/redoc",
    "/openapi.json",
}
PUBLIC_PREFIXES = ("/shared/",)


@dataclass
class Viewer:
    """Authenticated account identity.

    Attributes:
        account_id: Internal account id (never returned to callers).
        name_digest: The account's name digest.
        session_id: The session id the request authenticated with.
    """

    account_id: UUID
    name_digest: str
    session_id: str


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def parse_basic_credentials(header_value: str | None) -> tuple[str, str] | None:
    """Decode an HTTP Basic authorization header.

    Returns:
        (username, password), or None if the header is missing or malformed.
    """
    if not header_value:
        return None

    scheme, _, encoded = header_value.partition(" ")
    if scheme.lower() != "basic" or not encoded.strip():
        return None

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None

    username, separator, password = decoded.partition(":")
    if not separator or not username or not password:
        return None
    return username, password


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Extract and decode Basic credentials
    3. Validate (name digest, session id) via the session callback
    4. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        session_validator: Callable[[str, str], Viewer],
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            session_validator: Function(name_digest, session_id) -> Viewer.
                Raises ApiError when the pair doesn't authenticate.
        """
        super().__init__(app)
        self.session_validator = session_validator

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        if is_public_path(request.url.path):
            return await call_next(request)

        credentials = parse_basic_credentials(request.headers.get(AUTHORIZATION_HEADER))
        if credentials is None:
            logger.warning(
                "auth_failure",
                extra={"reason": "missing_or_malformed_header", "request_path": request.url.path},
            )
            return self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED, "Authentication required", 401
            )

        name_digest, session_id = credentials
        try:
            viewer = await run_in_threadpool(self.session_validator, name_digest, session_id)
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code)
        except Exception as e:
            logger.exception("Session validation failed: %s", e)
            return self._error_json_response(
                ApiErrorCode.E_INTERNAL, "Internal server error", 500
            )

        request.state.viewer = viewer
        set_account_context(viewer.name_digest)

        return await call_next(request)

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        """Create a JSON error response."""
        headers = {"WWW-Authenticate": WWW_AUTHENTICATE} if status_code == 401 else None
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
            headers=headers,
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated account.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer

