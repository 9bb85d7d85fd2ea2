"""API routes package.

Routes match on escaped path segments (EncodedPathMiddleware), so a name
containing "/" can never be mistaken for a longer route.
"""

from fastapi import APIRouter

from stash.api.routes import accounts, buckets, files, health, shared, shares, usage


def create_api_router() -> APIRouter:
    """Create the main API router with all routes."""
    router = APIRouter()

    router.include_router(health.router, tags=["health"])
    router.include_router(accounts.router, tags=["accounts"])
    router.include_router(usage.router, tags=["usage"])
    router.include_router(files.router, tags=["files"])
    router.include_router(shares.router, tags=["shares"])
    router.include_router(buckets.router, tags=["buckets"])
    router.include_router(shared.router, tags=["shared"])

    return router


__all__ = ["create_api_router"]
