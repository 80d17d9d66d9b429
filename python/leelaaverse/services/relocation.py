"""Media relocation service.

Copies a provider-hosted (ephemeral) asset into permanent storage:
- Validate the source URL (scheme, port, no credentials, hostname denylist)
- Resolve the host and refuse private, loopback, link-local and reserved addresses
- Download the full asset into memory with a size cap, re-validating every redirect hop
- Validate the bytes decode as an image with Pillow
- Upload to ``posts/{owner_id}/{object_id}.{ext}``
- Derive the thumbnail as an image-transformation URL (no second encode pass)

Every failure surfaces as E_UPLOAD_FAILED "Failed to upload image to storage"; the
underlying cause is logged, never returned to the client.
"""

import io
import socket
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, ip_address
from urllib.parse import urljoin, urlparse
from uuid import UUID

import httpx
from PIL import Image

from leelaaverse.errors import ApiError, ApiErrorCode
from leelaaverse.logging import get_logger
from leelaaverse.storage.client import StorageClientBase, StorageError
from leelaaverse.storage.paths import build_storage_path, extension_for_content_type

logger = get_logger(__name__)

UPLOAD_FAILED_MESSAGE = "Failed to upload image to storage"

USER_AGENT = "LeelaaverseMedia/1.0"

ALLOWED_SCHEMES = frozenset({"http", "https"})
ALLOWED_PORTS = frozenset({80, 443, None})

HOSTNAME_DENYLIST_EXACT = frozenset({"localhost"})
HOSTNAME_DENYLIST_SUFFIXES = (".local", ".internal", ".lan", ".home", ".localhost")

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})
MAX_REDIRECTS = 3

FORMAT_TO_MIME = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}


@dataclass(frozen=True)
class RelocatedMedia:
    """A relocated asset.

    Attributes:
        permanent_url: Public URL in owned storage
        thumbnail_url: Transformation URL for the square thumbnail
        storage_path: Object path, kept for compensation
        content_type: MIME type derived from the decoded image
    """

    permanent_url: str
    thumbnail_url: str
    storage_path: str
    content_type: str


class RelocationFailed(Exception):
    """Internal failure reason; mapped to E_UPLOAD_FAILED at the service boundary."""


def validate_source_url(url: str) -> str:
    """Check a source URL before any request is made to it.

    Returns:
        The URL's hostname.

    Raises:
        RelocationFailed: Scheme, port or credentials are not allowed, or the host is
            denylisted or resolves to a non-public address.
    """
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError as e:
        raise RelocationFailed(f"Invalid source URL: {e}") from e

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise RelocationFailed(f"Source URL scheme must be http or https, got: {scheme}")

    if parsed.username is not None or parsed.password is not None or "@" in parsed.netloc:
        raise RelocationFailed("Source URL must not contain credentials")

    hostname = parsed.hostname
    if not hostname:
        raise RelocationFailed("Source URL must have a host")

    if port not in ALLOWED_PORTS:
        raise RelocationFailed(f"Source URL port must be 80 or 443, got: {port}")

    check_hostname_denylist(hostname)
    validate_dns_resolution(hostname)
    return hostname


def check_hostname_denylist(hostname: str) -> None:
    hostname_lower = hostname.lower().rstrip(".")

    if hostname_lower in HOSTNAME_DENYLIST_EXACT:
        raise RelocationFailed(f"Source host '{hostname}' is not allowed")

    for suffix in HOSTNAME_DENYLIST_SUFFIXES:
        if hostname_lower.endswith(suffix):
            raise RelocationFailed(f"Source host '{hostname}' is not allowed")


def is_private_ip(ip: IPv4Address | IPv6Address) -> bool:
    """Check if IP address is private/reserved.

    Blocks loopback, private ranges, link-local (including the 169.254.169.254
    metadata endpoint), multicast, unspecified and reserved addresses. IPv4-mapped
    IPv6 addresses are judged by their IPv4 part.
    """
    if isinstance(ip, IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    return (
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_unspecified
        or ip.is_reserved
    )


def validate_dns_resolution(hostname: str) -> None:
    """Resolve hostname and validate all IPs are public.

    Literal IP hosts are checked directly without a lookup.

    Raises:
        RelocationFailed: Resolution failed or any address is not public.
    """
    try:
        literal = ip_address(hostname)
    except ValueError:
        literal = None

    if literal is not None:
        if is_private_ip(literal):
            logger.warning("relocation_blocked_private_ip", hostname=hostname)
            raise RelocationFailed(f"Source host '{hostname}' is not a public address")
        return

    try:
        results = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise RelocationFailed(f"Failed to resolve source host '{hostname}': {e}") from e

    if not results:
        raise RelocationFailed(f"Failed to resolve source host '{hostname}'")

    for _family, _, _, _, sockaddr in results:
        ip_str = sockaddr[0]
        try:
            ip = ip_address(ip_str)
        except ValueError:
            continue

        if is_private_ip(ip):
            logger.warning("relocation_blocked_private_ip", hostname=hostname, ip=ip_str)
            raise RelocationFailed(f"Source host '{hostname}' resolved to a private address")


def detect_image_type(data: bytes) -> str:
    """Return the MIME type of ``data`` after verifying it decodes as an image.

    Raises:
        RelocationFailed: Bytes are not a supported image.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.verify()
        img_format = (img.format or "").lower()
    except Exception as e:
        raise RelocationFailed(f"Content is not a valid image: {e}") from e

    content_type = FORMAT_TO_MIME.get(img_format)
    if content_type is None:
        raise RelocationFailed(f"Unsupported image format '{img_format}'")
    return content_type


class MediaRelocator:
    """Relocates remote images into the configured storage.

    Args:
        storage: Storage client objects are written to.
        max_bytes: Largest asset accepted.
        thumbnail_size: Edge length of derived thumbnails.
        timeout_s: Download timeout.
        http_client: Optional client for downloads; a short-lived one is created per
            call when omitted.
    """

    def __init__(
        self,
        storage: StorageClientBase,
        *,
        max_bytes: int,
        thumbnail_size: int = 400,
        timeout_s: float = 30.0,
        http_client: httpx.Client | None = None,
    ):
        self.storage = storage
        self.max_bytes = max_bytes
        self.thumbnail_size = thumbnail_size
        self.timeout_s = timeout_s
        self._http_client = http_client

    def relocate(self, source_url: str, owner_id: UUID) -> RelocatedMedia:
        """Copy ``source_url`` into storage under the owner's namespace.

        Raises:
            ApiError(E_UPLOAD_FAILED): Download, validation, or upload failed.
        """
        try:
            data = self._download(source_url)
            content_type = detect_image_type(data)
            path = build_storage_path(owner_id, extension_for_content_type(content_type))
            self.storage.upload_object(path, data, content_type=content_type)
        except (RelocationFailed, StorageError) as e:
            logger.warning("media_relocation_failed", source_url=source_url, error=str(e))
            raise ApiError(ApiErrorCode.E_UPLOAD_FAILED, UPLOAD_FAILED_MESSAGE) from e

        relocated = RelocatedMedia(
            permanent_url=self.storage.public_url(path),
            thumbnail_url=self.storage.thumbnail_url(path, size=self.thumbnail_size),
            storage_path=path,
            content_type=content_type,
        )
        logger.info(
            "media_relocated",
            storage_path=path,
            content_type=content_type,
            size_bytes=len(data),
        )
        return relocated

    def discard(self, relocated: RelocatedMedia) -> None:
        """Delete a relocated object after the publish that needed it failed."""
        self.storage.delete_object(relocated.storage_path)
        logger.info("media_relocation_discarded", storage_path=relocated.storage_path)

    def _download(self, url: str) -> bytes:
        validate_source_url(url)
        if self._http_client is not None:
            return self._fetch_with_redirects(url, self._http_client)
        with httpx.Client(
            timeout=self.timeout_s, follow_redirects=False, trust_env=False
        ) as client:
            return self._fetch_with_redirects(url, client)

    def _fetch_with_redirects(self, url: str, client: httpx.Client) -> bytes:
        """Follow up to MAX_REDIRECTS hops by hand, validating each Location first."""
        for _ in range(MAX_REDIRECTS + 1):
            data, location = self._fetch(url, client)
            if location is None:
                return data
            url = urljoin(url, location)
            validate_source_url(url)
        raise RelocationFailed(f"Too many redirects (max {MAX_REDIRECTS} allowed)")

    def _fetch(self, url: str, client: httpx.Client) -> tuple[bytes, str | None]:
        """Fetch one hop. Returns ``(body, None)``, or ``(b"", location)`` on a redirect."""
        try:
            with client.stream(
                "GET", url, headers={"User-Agent": USER_AGENT}, follow_redirects=False
            ) as response:
                if response.status_code in REDIRECT_STATUS_CODES:
                    location = response.headers.get("location")
                    if not location:
                        raise RelocationFailed("Redirect without Location header")
                    return b"", location

                if response.status_code >= 400:
                    raise RelocationFailed(f"Source returned status {response.status_code}")

                chunks = []
                total_bytes = 0
                for chunk in response.iter_bytes(chunk_size=64 * 1024):
                    total_bytes += len(chunk)
                    if total_bytes > self.max_bytes:
                        raise RelocationFailed(
                            f"Asset exceeds maximum size of {self.max_bytes} bytes"
                        )
                    chunks.append(chunk)
        except httpx.TimeoutException as e:
            raise RelocationFailed("Source download timed out") from e
        except httpx.RequestError as e:
            raise RelocationFailed(f"Failed to download source: {e}") from e

        data = b"".join(chunks)
        if not data:
            raise RelocationFailed("Source returned an empty body")
        return data, None
