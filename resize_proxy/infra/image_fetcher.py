# resize_proxy/infra/image_fetcher.py
"""
Source image download + decode.

One GET per call through the shared aiohttp fetcher session.  There is no
retry and no caching: any failure is surfaced to the caller immediately.

Preconditions enforced on the response:
- 2xx status (anything else → UpstreamStatusError, body is never decoded)
- a positive declared Content-Length (otherwise SizeUnknownError)
- declared and actual size within ``max_bytes`` (ResponseTooLargeError)

Redirects are followed manually (max 5 hops) so that every hop can be
checked with ``redirect_guard``; a hop to a host the guard rejects raises
ForbiddenHostError.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional
from urllib.parse import urljoin

import aiohttp
from PIL import Image

from resize_proxy.core.errors import (
    ForbiddenHostError,
    FetchTimeoutError,
    ResizeError,
    ResponseTooLargeError,
    SizeUnknownError,
    UpstreamError,
    UpstreamStatusError,
)
from resize_proxy.infra.http_client import get_fetcher_session
from resize_proxy.infra.image_codec import decode_image
from resize_proxy.infra.logging_config import get_logger, mask_url
from resize_proxy.infra.metrics import AppMetrics

logger = get_logger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 5
CHUNK_SIZE = 64 * 1024


def parse_content_length(value: Optional[str]) -> Optional[int]:
    """Declared body length, or None when absent or unparseable."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except (TypeError, ValueError):
        return None


class ImageFetcher:
    """
    Downloads a source image and decodes it into a Pillow image.

    Decoding runs in a worker thread so a large image never stalls the
    event loop.
    """

    def __init__(
        self,
        max_bytes: int,
        timeout_seconds: float = 30.0,
        connect_timeout_seconds: float = 10.0,
        redirect_guard: Callable[[str], bool] | None = None,
    ):
        self.max_bytes = max_bytes
        self.redirect_guard = redirect_guard
        self._timeout = aiohttp.ClientTimeout(
            total=timeout_seconds,
            connect=connect_timeout_seconds,
        )

    @classmethod
    def from_settings(
        cls,
        settings,
        redirect_guard: Callable[[str], bool] | None = None,
    ) -> "ImageFetcher":
        return cls(
            max_bytes=settings.max_download_bytes,
            timeout_seconds=settings.fetch_timeout_seconds,
            connect_timeout_seconds=settings.fetch_connect_timeout_seconds,
            redirect_guard=redirect_guard,
        )

    async def fetch(self, url: str) -> Image.Image:
        """
        Download ``url`` and decode it.

        Raises:
            UpstreamError: non-2xx status, missing length, oversize body,
                network failure or timeout.
            ForbiddenHostError: a redirect pointed at a rejected host.
            DecodeError: the body is not a decodable image.
        """
        data = await self.download(url)
        return await asyncio.to_thread(decode_image, data)

    async def download(self, url: str) -> bytes:
        """Download the raw body of ``url`` with the size preconditions."""
        session = get_fetcher_session()
        logger.info(f"Fetching source image: {mask_url(url)}")

        try:
            current_url = url
            for redirect_num in range(MAX_REDIRECTS + 1):
                async with session.get(
                    current_url,
                    timeout=self._timeout,
                    allow_redirects=False,
                ) as response:
                    if response.status in REDIRECT_STATUSES:
                        current_url = self._next_hop(current_url, response)
                        logger.debug(
                            f"Redirect hop {redirect_num + 1}: "
                            f"{response.status} → {mask_url(current_url)}"
                        )
                        continue

                    if not 200 <= response.status < 300:
                        logger.warning(
                            f"Source returned HTTP {response.status}: {mask_url(current_url)}"
                        )
                        raise UpstreamStatusError(response.status)

                    return await self._read_body(response)

            raise UpstreamError(f"Too many redirects (>{MAX_REDIRECTS}) fetching source image")

        except ResizeError:
            raise
        except TimeoutError as e:
            # aiohttp timeouts subclass both TimeoutError and ClientError
            logger.warning(f"Source fetch timed out: {mask_url(url)}")
            raise FetchTimeoutError() from e
        except aiohttp.ClientError as e:
            logger.warning(f"Source fetch failed: {mask_url(url)}: {type(e).__name__}: {e}")
            raise UpstreamError(f"Failed to fetch source image: {type(e).__name__}") from e

    def _next_hop(self, current_url: str, response) -> str:
        location = response.headers.get("Location")
        if not location:
            raise UpstreamError(f"Redirect {response.status} without Location header")

        next_url = urljoin(current_url, location)
        if self.redirect_guard is not None and not self.redirect_guard(next_url):
            logger.warning(f"Redirect to disallowed host rejected: {mask_url(next_url)}")
            raise ForbiddenHostError()
        return next_url

    async def _read_body(self, response) -> bytes:
        declared = parse_content_length(response.headers.get("Content-Length"))

        if declared is None or declared <= 0:
            raise SizeUnknownError()

        if declared > self.max_bytes:
            raise ResponseTooLargeError(
                f"Source size {declared} bytes exceeds limit of {self.max_bytes} bytes"
            )

        buf = bytearray()
        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
            if len(buf) + len(chunk) > self.max_bytes:
                raise ResponseTooLargeError(
                    f"Source body exceeds limit of {self.max_bytes} bytes"
                )
            buf.extend(chunk)

        # A short or long body is not an error here; the decoder is the
        # integrity check.
        if len(buf) != declared:
            logger.info(
                f"Source body length differs from Content-Length: "
                f"declared={declared}, received={len(buf)}"
            )

        AppMetrics.source_downloaded(len(buf))
        logger.debug(f"Source download complete: {len(buf) / 1024:.0f}KB")
        return bytes(buf)
