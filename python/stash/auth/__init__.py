"""Authentication module for Stash.

Provides:
- AuthMiddleware: HTTP Basic (name digest, session id) verification
- Viewer: Authenticated account identity
- get_viewer: FastAPI dependency for route handlers
"""

from stash.auth.middleware import AuthMiddleware, Viewer, get_viewer, parse_basic_credentials

__all__ = ["AuthMiddleware", "Viewer", "get_viewer", "parse_basic_credentials"]
