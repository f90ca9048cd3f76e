"""Image loading for vision capabilities.

Snapshots reference pixels by URL: ``data:`` URLs are decoded in-process,
``http(s)`` URLs are fetched with httpx, optionally through a CDN
fetch-transform prefix that downsizes large originals before they reach a
provider.
"""

import base64
import binascii
from typing import Optional
from urllib.parse import unquote_to_bytes, urlparse

import httpx
import structlog

from creative_compliance.capabilities.base import CapabilityError

logger = structlog.get_logger()

MAX_IMAGE_BYTES = 10 * 1024 * 1024


class ImageLoadError(CapabilityError):
    """The referenced image could not be decoded or fetched."""


def decode_data_url(url: str, max_bytes: int = MAX_IMAGE_BYTES) -> bytes:
    """Decode a ``data:[<mime>][;base64],<payload>`` URL of at most ``max_bytes``."""
    if not url.startswith("data:") or "," not in url:
        raise ImageLoadError("Not a data URL")
    header, payload = url[5:].split(",", 1)
    if header.endswith(";base64"):
        # Decoded size is three bytes per four characters, less padding
        if (len(payload) // 4) * 3 - payload.count("=") > max_bytes:
            raise ImageLoadError(f"Image exceeds {max_bytes} bytes")
        try:
            data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ImageLoadError(f"Invalid base64 image payload: {e}") from e
    else:
        data = unquote_to_bytes(payload)
    if len(data) > max_bytes:
        raise ImageLoadError(f"Image exceeds {max_bytes} bytes")
    return data


def data_url_mime_type(url: str, default: str = "image/png") -> str:
    if not url.startswith("data:"):
        return default
    header = url[5:].split(",", 1)[0]
    mime = header.split(";", 1)[0]
    return mime or default


class ImageLoader:
    """Resolves image references to raw bytes."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        cdn_transform_endpoint: str = "",
        timeout: float = 20.0,
        max_bytes: int = MAX_IMAGE_BYTES,
    ):
        self._client = client
        self._owns_client = client is None
        self.cdn_transform_endpoint = cdn_transform_endpoint
        self.timeout = timeout
        self.max_bytes = max_bytes

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    def transform_url(self, url: str) -> str:
        if not self.cdn_transform_endpoint:
            return url
        return f"{self.cdn_transform_endpoint.rstrip('/')}/{url}"

    async def load(self, url: str) -> bytes:
        if not url:
            raise ImageLoadError("Empty image reference")
        if url.startswith("data:"):
            return decode_data_url(url, self.max_bytes)

        scheme = urlparse(url).scheme
        if scheme not in ("http", "https"):
            raise ImageLoadError(f"Unsupported image URL scheme '{scheme}'")

        target = self.transform_url(url)
        try:
            async with self._get_http_client().stream("GET", target) as response:
                response.raise_for_status()
                return await self._read_capped(response, target)
        except httpx.HTTPError as e:
            logger.warning("image_fetch_failed", url=target, error=str(e))
            raise ImageLoadError(f"Could not fetch image: {e}") from e

    async def _read_capped(self, response: httpx.Response, target: str) -> bytes:
        """Read the body, giving up as soon as it passes ``max_bytes``."""
        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_bytes:
            logger.warning("image_too_large", url=target, content_length=int(declared))
            raise ImageLoadError(f"Image exceeds {self.max_bytes} bytes")

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > self.max_bytes:
                logger.warning("image_too_large", url=target, read_bytes=len(body))
                raise ImageLoadError(f"Image exceeds {self.max_bytes} bytes")
        return bytes(body)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
