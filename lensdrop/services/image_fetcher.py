"""Image URL validation and streaming download."""

from __future__ import annotations

import ipaddress
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import httpx

from lensdrop.exceptions import LensDropError

if TYPE_CHECKING:
    from lensdrop.config import LensDropConfig
    from lensdrop.services.file_service import FileService

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})
MAX_URL_LENGTH = 2083

_LABEL_RE = re.compile(
    r"^[a-z0-9\u00a1-\uffff]([a-z0-9\u00a1-\uffff-]{0,61}[a-z0-9\u00a1-\uffff])?$",
    re.IGNORECASE,
)
_TLD_RE = re.compile(r"^([a-z\u00a1-\uffff]{2,}|xn--[a-z0-9-]{2,})$", re.IGNORECASE)


class InvalidImageUrlError(LensDropError):
    """The image URL is missing, not a string, or not an absolute http(s) URL."""


class DownloadError(LensDropError):
    """The image could not be downloaded or written to disk."""


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def validate_image_url(url: Any, *, require_tld: bool = True) -> str:
    """Check that url is an absolute http/https URL with a usable host.

    No network access happens here; this runs before any download.

    Args:
        url: Candidate value from the request body.
        require_tld: Reject hostnames without a top-level domain (`localhost`,
            bare intranet names). IP addresses are always accepted.

    Returns:
        The URL unchanged.

    Raises:
        InvalidImageUrlError: If the value fails any check.
    """
    if not isinstance(url, str) or not url:
        raise InvalidImageUrlError("Image URL must be a non-empty string")
    if len(url) > MAX_URL_LENGTH:
        raise InvalidImageUrlError("Image URL is too long")
    if any(ch.isspace() for ch in url):
        raise InvalidImageUrlError("Image URL must not contain whitespace")

    try:
        parts = urlsplit(url)
        host = parts.hostname
        # Accessing .port validates it; urlsplit raises ValueError when out of range.
        parts.port
    except ValueError as e:
        raise InvalidImageUrlError(f"Malformed image URL: {e}") from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidImageUrlError("Image URL must use http or https")
    if not host:
        raise InvalidImageUrlError("Image URL has no host")

    if _is_ip_address(host):
        return url

    labels = host.rstrip(".").split(".")
    if not all(_LABEL_RE.match(label) for label in labels):
        raise InvalidImageUrlError(f"Invalid host in image URL: {host}")
    if require_tld and (len(labels) < 2 or not _TLD_RE.match(labels[-1])):
        raise InvalidImageUrlError(f"Image URL host has no top-level domain: {host}")

    return url


class ImageFetcher:
    """Download images into the images directory.

    The HTTP client is created lazily and shared across requests; pass a
    client in to control transport or timeouts (tests use
    `httpx.MockTransport`).
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        config: "LensDropConfig",
        file_service: "FileService",
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.file_service = file_service
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.download_timeout_seconds,
                follow_redirects=True,
            )
        return self._client

    def validate_url(self, url: Any) -> str:
        """Validate url with this fetcher's TLD policy."""
        return validate_image_url(url, require_tld=self.config.image_url_require_tld)

    async def fetch(self, url: str) -> Path:
        """Stream an image to a local timestamped file.

        Args:
            url: Absolute http/https image URL.

        Returns:
            Path of the written file.

        Raises:
            InvalidImageUrlError: If url fails validation (no request is made).
            DownloadError: On network errors, non-2xx status, or write errors.
                Anything already written stays on disk.
        """
        url = self.validate_url(url)
        extension = self.file_service.image_extension_for_url(url)
        local_path = self.file_service.new_image_path(extension)

        logger.info("Downloading image to: %s", local_path)

        try:
            async with self._get_client().stream("GET", url) as response:
                response.raise_for_status()
                with open(local_path, "wb") as f:
                    async for chunk in response.aiter_bytes(self.CHUNK_SIZE):
                        f.write(chunk)
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                f"Image download returned HTTP {e.response.status_code} for {url}"
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(f"Image download failed for {url}: {e}") from e
        except OSError as e:
            raise DownloadError(f"Could not write image to {local_path}: {e}") from e

        logger.info(
            "Image downloaded: %s (%d bytes)", local_path.name, local_path.stat().st_size
        )
        return local_path

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
