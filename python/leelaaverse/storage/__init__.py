"""Storage module for Supabase Storage operations.

Provides:
- StorageClient for writing relocated media to Supabase Storage
- FakeStorageClient for local development and tests
- Path building utilities for consistent storage paths
"""

from leelaaverse.storage.client import (
    FakeStorageClient,
    StorageClient,
    StorageClientBase,
    StorageError,
    get_storage_client,
)
from leelaaverse.storage.paths import build_storage_path, extension_for_content_type

__all__ = [
    "StorageClient",
    "StorageClientBase",
    "FakeStorageClient",
    "StorageError",
    "get_storage_client",
    "build_storage_path",
    "extension_for_content_type",
]
