"""Tests for storage clients and path building.

Covers:
- Path layout and the test-run prefix
- Supabase client URLs and error mapping (respx, no network)
- Fake client behaviour relied on by route tests
"""

from uuid import UUID

import httpx
import pytest
import respx

from leelaaverse.storage.client import FakeStorageClient, StorageClient, StorageError
from leelaaverse.storage.paths import (
    TEST_PREFIX_ENV_VAR,
    build_storage_path,
    extension_for_content_type,
)

OWNER = UUID("5b0c4c57-8f0e-4f57-9a55-2f1b6f3c2d10")
OBJECT = UUID("c2f6a9d1-3b7e-4d0a-8e6f-91a4d2b7c8e5")
SUPABASE = "https://project.supabase.test"


class TestBuildStoragePath:
    def test_layout(self, monkeypatch):
        monkeypatch.delenv(TEST_PREFIX_ENV_VAR, raising=False)

        assert build_storage_path(OWNER, "jpg", OBJECT) == f"posts/{OWNER}/{OBJECT}.jpg"

    def test_prefix_applied_once(self, monkeypatch):
        monkeypatch.setenv(TEST_PREFIX_ENV_VAR, "test_runs/run-1")

        assert build_storage_path(OWNER, "png", OBJECT) == (
            f"test_runs/run-1/posts/{OWNER}/{OBJECT}.png"
        )

    def test_fresh_object_ids(self):
        assert build_storage_path(OWNER, "jpg") != build_storage_path(OWNER, "jpg")

    def test_extension_mapping(self):
        assert extension_for_content_type("image/jpeg") == "jpg"
        with pytest.raises(ValueError):
            extension_for_content_type("image/svg+xml")


class TestStorageClient:
    @pytest.fixture
    def storage(self) -> StorageClient:
        return StorageClient(SUPABASE, "service-key", bucket="media")

    def test_public_and_thumbnail_urls(self, storage: StorageClient):
        path = f"posts/{OWNER}/{OBJECT}.jpg"

        assert storage.public_url(path) == (
            f"{SUPABASE}/storage/v1/object/public/media/{path}"
        )
        assert storage.thumbnail_url(path, size=400) == (
            f"{SUPABASE}/storage/v1/render/image/public/media/{path}"
            "?width=400&height=400&resize=cover"
        )

    @respx.mock
    def test_upload_sends_content_type_without_upsert(self, storage: StorageClient):
        route = respx.post(f"{SUPABASE}/storage/v1/object/media/a.jpg").mock(
            return_value=httpx.Response(200, json={"Key": "media/a.jpg"})
        )

        storage.upload_object("a.jpg", b"bytes", content_type="image/jpeg")

        request = route.calls.last.request
        assert request.headers["content-type"] == "image/jpeg"
        assert request.headers["x-upsert"] == "false"
        assert request.headers["authorization"] == "Bearer service-key"

    @respx.mock
    def test_upload_failure_raises(self, storage: StorageClient):
        respx.post(f"{SUPABASE}/storage/v1/object/media/a.jpg").mock(
            return_value=httpx.Response(409, json={"error": "Duplicate"})
        )

        with pytest.raises(StorageError) as exc_info:
            storage.upload_object("a.jpg", b"bytes", content_type="image/jpeg")

        assert exc_info.value.code == "E_UPLOAD_FAILED"

    @respx.mock
    def test_delete_is_best_effort(self, storage: StorageClient):
        respx.delete(f"{SUPABASE}/storage/v1/object/media/a.jpg").mock(
            side_effect=httpx.ConnectError("down")
        )

        storage.delete_object("a.jpg")


class TestFakeStorageClient:
    def test_upload_then_delete(self):
        fake = FakeStorageClient()
        fake.upload_object("a.jpg", b"abc", content_type="image/jpeg")

        assert fake.get_object("a.jpg") == b"abc"
        assert fake.paths() == ["a.jpg"]

        fake.delete_object("a.jpg")
        assert fake.paths() == []

    def test_no_overwrite(self):
        fake = FakeStorageClient()
        fake.upload_object("a.jpg", b"abc", content_type="image/jpeg")

        with pytest.raises(StorageError):
            fake.upload_object("a.jpg", b"xyz", content_type="image/jpeg")
        assert fake.get_object("a.jpg") == b"abc"
