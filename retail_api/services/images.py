"""
Product image URL ingestion
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import status
import httpx
import structlog

from retail_api.core.errors import ApiError, bad_request

logger = structlog.get_logger(__name__)


@dataclass
class FetchedImage:
    url: str
    content_type: str
    size_bytes: Optional[int]


class ImageFetcher:
    """Checks that a URL serves an image before it is stored on an item"""

    def __init__(self, timeout_seconds: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = httpx.Timeout(timeout_seconds)
        # Tests pass an httpx.MockTransport
        self.transport = transport

    def fetch(self, url: str) -> FetchedImage:
        if not url.lower().startswith(("http://", "https://")):
            raise bad_request("invalid_image", "Image URL must be http or https")

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport, follow_redirects=True) as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
                    length = response.headers.get("content-length")
        except httpx.HTTPStatusError as e:
            logger.warning(f"Image fetch returned {e.response.status_code}", url=url)
            raise ApiError(status.HTTP_502_BAD_GATEWAY, "image_fetch_failed", f"Upstream returned {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.warning(f"Image fetch failed: {e}", url=url)
            raise ApiError(status.HTTP_502_BAD_GATEWAY, "image_fetch_failed")

        if not content_type.startswith("image/"):
            raise bad_request("invalid_image", f"Unsupported content type: {content_type or 'unknown'}")

        size = int(length) if length and length.isdigit() else None
        logger.info("Image URL verified", url=url, content_type=content_type)
        return FetchedImage(url=url, content_type=content_type, size_bytes=size)
