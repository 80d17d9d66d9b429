"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
"""

from fastapi import APIRouter

from leelaaverse.api.routes.health import router as health_router
from leelaaverse.api.routes.posts import router as posts_router


def create_api_router() -> APIRouter:
    """Create and configure the API router."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(posts_router, prefix="/api/posts", tags=["posts"])
    return api_router


__all__ = ["create_api_router"]
