"""Supabase Storage client abstraction.

Provides a small interface for the permanent media store:
- Object upload (relocated generation results, directly attached media)
- Public and image-transformation URLs (display and thumbnail)
- Object deletion (compensation after a failed publish)

All methods receive the full storage path; prefixes are applied by
``leelaaverse.storage.paths``.
"""

from abc import ABC, abstractmethod
from urllib.parse import urlencode

import httpx

from leelaaverse.config import get_settings
from leelaaverse.logging import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """Storage operation error."""

    def __init__(self, message: str, code: str = "E_UPLOAD_FAILED"):
        super().__init__(message)
        self.message = message
        self.code = code


class StorageClientBase(ABC):
    """Abstract base class for storage client implementations."""

    @abstractmethod
    def upload_object(self, path: str, content: bytes, *, content_type: str) -> None:
        """Write ``content`` at ``path``.

        Raises:
            StorageError: If the upload is rejected or the store is unreachable.
        """
        ...

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Return the permanent public URL of an object."""
        ...

    @abstractmethod
    def thumbnail_url(self, path: str, *, size: int) -> str:
        """Return a URL serving a ``size`` x ``size`` center-cropped rendition."""
        ...

    @abstractmethod
    def delete_object(self, path: str) -> None:
        """Delete an object. Best-effort: logs errors but doesn't raise."""
        ...


class StorageClient(StorageClientBase):
    """Production Supabase Storage client.

    Uses httpx for HTTP operations against the Supabase Storage API. The bucket is
    expected to be public so that ``public_url`` and ``thumbnail_url`` resolve
    without signing.
    """

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        bucket: str = "leelaaverse",
        timeout_s: float = 30.0,
    ):
        self._base_url = supabase_url.rstrip("/")
        self._bucket = bucket
        self._timeout = timeout_s
        self._storage_url = f"{self._base_url}/storage/v1"
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def upload_object(self, path: str, content: bytes, *, content_type: str) -> None:
        url = f"{self._storage_url}/object/{self._bucket}/{path}"
        headers = {**self._headers, "Content-Type": content_type, "x-upsert": "false"}

        try:
            with httpx.Client() as client:
                response = client.post(url, headers=headers, content=content, timeout=self._timeout)
        except httpx.RequestError as e:
            raise StorageError(f"Storage unreachable: {e}", code="E_UPLOAD_FAILED") from e

        if response.status_code not in (200, 201):
            raise StorageError(
                f"Failed to upload object: {response.status_code} {response.text}",
                code="E_UPLOAD_FAILED",
            )

    def public_url(self, path: str) -> str:
        return f"{self._storage_url}/object/public/{self._bucket}/{path}"

    def thumbnail_url(self, path: str, *, size: int) -> str:
        query = urlencode({"width": size, "height": size, "resize": "cover"})
        return f"{self._storage_url}/render/image/public/{self._bucket}/{path}?{query}"

    def delete_object(self, path: str) -> None:
        url = f"{self._storage_url}/object/{self._bucket}/{path}"

        try:
            with httpx.Client() as client:
                response = client.delete(url, headers=self._headers, timeout=self._timeout)
        except httpx.RequestError as e:
            logger.warning("storage_delete_error", storage_path=path, error=str(e))
            return

        if response.status_code not in (200, 204, 404):
            logger.warning(
                "storage_delete_failed",
                storage_path=path,
                status_code=response.status_code,
            )


class FakeStorageClient(StorageClientBase):
    """In-memory storage client for local development and tests."""

    BASE_URL = "https://fake-storage.test"

    def __init__(self, fail_uploads: bool = False):
        self._objects: dict[str, tuple[bytes, str]] = {}  # path -> (content, content_type)
        self.fail_uploads = fail_uploads

    def upload_object(self, path: str, content: bytes, *, content_type: str) -> None:
        if self.fail_uploads:
            raise StorageError("Simulated upload failure", code="E_UPLOAD_FAILED")
        if path in self._objects:
            raise StorageError(f"Object already exists: {path}", code="E_UPLOAD_FAILED")
        self._objects[path] = (content, content_type)

    def public_url(self, path: str) -> str:
        return f"{self.BASE_URL}/public/{path}"

    def thumbnail_url(self, path: str, *, size: int) -> str:
        return f"{self.BASE_URL}/render/{path}?width={size}&height={size}&resize=cover"

    def delete_object(self, path: str) -> None:
        self._objects.pop(path, None)

    # Test helper methods

    def get_object(self, path: str) -> bytes | None:
        """Get object content directly (test helper)."""
        if path not in self._objects:
            return None
        return self._objects[path][0]

    def paths(self) -> list[str]:
        """List stored object paths (test helper)."""
        return sorted(self._objects)

    def clear(self) -> None:
        """Clear all stored objects (test helper)."""
        self._objects.clear()


def get_storage_client() -> StorageClientBase:
    """Get the configured storage client.

    Returns:
        StorageClient if SUPABASE_URL and SUPABASE_SERVICE_KEY are set,
        FakeStorageClient otherwise.
    """
    settings = get_settings()

    if settings.supabase_url and settings.supabase_service_key:
        return StorageClient(
            supabase_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=settings.storage_bucket,
        )

    return FakeStorageClient()
