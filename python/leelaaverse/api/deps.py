"""FastAPI dependencies for route handlers.

Shared clients live on ``app.state`` and are handed to routes from here so tests
can swap them through ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from leelaaverse.config import get_settings
from leelaaverse.db.session import get_db, get_session_factory
from leelaaverse.services.generation import FalQueueClient
from leelaaverse.services.relocation import MediaRelocator
from leelaaverse.storage.client import StorageClientBase

__all__ = [
    "get_db",
    "get_generation_client",
    "get_media_relocator",
    "get_session_factory",
    "get_storage_client",
]


def get_generation_client(request: Request) -> FalQueueClient:
    """Get the FAL queue client created at startup on the shared httpx.AsyncClient."""
    return request.app.state.generation_client


def get_storage_client(request: Request) -> StorageClientBase:
    """Get the storage client chosen when the app was created."""
    return request.app.state.storage_client


def get_media_relocator(
    storage: Annotated[StorageClientBase, Depends(get_storage_client)],
) -> MediaRelocator:
    settings = get_settings()
    return MediaRelocator(
        storage,
        max_bytes=settings.max_image_bytes,
        thumbnail_size=settings.thumbnail_size,
        timeout_s=settings.media_fetch_timeout_s,
    )
