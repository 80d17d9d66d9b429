"""Storage path building utilities.

All relocated media paths are built here so the test-run prefix is applied
exactly once.

Path Invariant:
    - Production: posts/{owner_id}/{object_id}.{ext}
    - Test: test_runs/{run_id}/posts/{owner_id}/{object_id}.{ext}

Rules:
    - No leading slash
    - Object ids are fresh UUIDs, so paths never collide or get overwritten
"""

import os
from uuid import UUID, uuid4

# Environment variable for test run prefix
TEST_PREFIX_ENV_VAR = "STORAGE_TEST_PREFIX"

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def _get_test_prefix() -> str:
    prefix = os.environ.get(TEST_PREFIX_ENV_VAR, "")
    if prefix and not prefix.endswith("/"):
        prefix = f"{prefix}/"
    return prefix


def extension_for_content_type(content_type: str) -> str:
    """Map an image MIME type to a file extension.

    Raises:
        ValueError: If the content type is not a supported image type.
    """
    try:
        return CONTENT_TYPE_EXTENSIONS[content_type]
    except KeyError:
        raise ValueError(f"Unsupported content type '{content_type}'") from None


def build_storage_path(owner_id: UUID | str, ext: str, object_id: UUID | None = None) -> str:
    """Build the storage path for a relocated media object.

    Example:
        >>> build_storage_path(owner_id, "jpg")
        'posts/7c1e.../3f2a....jpg'
    """
    prefix = _get_test_prefix()
    return f"{prefix}posts/{owner_id}/{object_id or uuid4()}.{ext}"
