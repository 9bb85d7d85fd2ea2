"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Store Lifecycle:
- create_app(store=...) uses the given Store (tests, embedding)
- create_app() builds a Store from settings, creates the schema, and
  disposes of the engine at shutdown

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. AuthMiddleware (validates the session, sets viewer)
3. EncodedPathMiddleware (routing path from the raw path)
4. Route handler
5. AuthMiddleware (returns response)
6. RequestIDMiddleware (logs, sets response header)
"""

from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from stash.api.routes import create_api_router
from stash.auth.middleware import AuthMiddleware, Viewer
from stash.config import API_VERSION, get_settings
from stash.db.store import Store, create_store
from stash.errors import ApiError
from stash.logging import configure_logging, get_logger
from stash.middleware.encoded_path import EncodedPathMiddleware
from stash.middleware.request_id import RequestIDMiddleware
from stash.responses import (
    api_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from stash.services import sessions as sessions_service

logger = get_logger(__name__)


def create_session_validator(store: Store) -> Callable[[str, str], Viewer]:
    """Create the callback the auth middleware uses to check a session.

    The callback opens its own database session per request.
    """

    def validate(name_digest: str, session_id: str) -> Viewer:
        with store.session() as db:
            account = sessions_service.validate(db, name_digest, session_id)
            return Viewer(
                account_id=account.id,
                name_digest=account.name_digest,
                session_id=session_id,
            )

    return validate


def create_app(store: Store | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Store to serve. If None, one is built from settings and its
            schema is created.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(json_format=settings.log_json)

    owns_store = store is None
    if store is None:
        store = create_store(settings)
        store.init()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_store:
            store.dispose()
            logger.info("store_disposed")

    app = FastAPI(
        title="Stash API",
        description="Pseudonymous storage and sharing backend",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.store = store

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(create_api_router())

    # Innermost: routing sees escaped path segments
    app.add_middleware(EncodedPathMiddleware)

    # Auth middleware runs on all requests except public paths
    app.add_middleware(
        AuthMiddleware,
        session_validator=create_session_validator(store),
    )
    logger.info("auth_middleware_enabled", env=settings.stash_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
