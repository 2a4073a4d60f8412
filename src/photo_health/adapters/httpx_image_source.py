"""Image source that resolves URLs and data URLs to bytes."""

import base64
import binascii
from dataclasses import dataclass

import httpx

from photo_health.services.quality import ImageSource, UnreadableImageError

DATA_URL_PREFIX = "data:"


@dataclass
class HttpxImageSource(ImageSource):
    """Fetches remote images with httpx and decodes base64 data URLs."""

    http_client: httpx.AsyncClient
    timeout: float = 15.0

    @classmethod
    def create(cls, timeout: float = 15.0) -> "HttpxImageSource":
        """Create an image source with a managed httpx session."""
        return cls(
            http_client=httpx.AsyncClient(follow_redirects=True), timeout=timeout
        )

    async def load(self, reference: str) -> bytes:
        """Return the bytes behind an http(s) URL or a data URL."""
        if reference.startswith(DATA_URL_PREFIX):
            return decode_data_url(reference)
        try:
            response = await self.http_client.get(reference, timeout=self.timeout)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise UnreadableImageError(f"Cannot fetch image: {exc}") from exc
        if not response.content:
            raise UnreadableImageError("Image response was empty")
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def decode_data_url(data_url: str) -> bytes:
    """Decode a ``data:<mime>;base64,<payload>`` URL."""
    header, _, payload = data_url.partition(",")
    if not payload or not header.endswith(";base64"):
        raise UnreadableImageError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UnreadableImageError(f"Invalid base64 image data: {exc}") from exc
