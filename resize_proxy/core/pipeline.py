# resize_proxy/core/pipeline.py
"""
Resize pipeline — the single orchestration point for one resize call.

Steps (each short-circuits on failure):
    1. Check the mode
    2. Check the source host against the allow-list
    3. Fetch + decode the source image
    4. Resize (fit / fill)
    5. Encode to JPEG

Nothing is returned until the encoded bytes are complete, so a caller
either gets a whole image or a ResizeError.  There is no retry anywhere.
"""
from __future__ import annotations

import asyncio

from PIL import Image

from resize_proxy.core.domain import ResizeMode, ResizeRequest, ResizedOutput
from resize_proxy.core.errors import (
    ForbiddenHostError,
    InternalError,
    InvalidInputError,
    ResizeError,
)
from resize_proxy.core.ports import HostPolicy, ImageSource
from resize_proxy.core.resizer import resize_image
from resize_proxy.infra.image_codec import JPEG_CONTENT_TYPE, encode_jpeg
from resize_proxy.infra.logging_config import LogContext, get_logger, mask_url
from resize_proxy.infra.metrics import AppMetrics

logger = get_logger(__name__)


class ResizePipeline:
    """
    Validate → fetch → resize → encode.

    Thread-safety: holds only immutable collaborators, so it is safe to share
    between concurrent requests.
    """

    def __init__(
        self,
        allowlist: HostPolicy,
        fetcher: ImageSource,
        jpeg_quality: int = 85,
    ) -> None:
        self.allowlist = allowlist
        self.fetcher = fetcher
        self.jpeg_quality = jpeg_quality

    @classmethod
    def from_settings(cls, settings) -> "ResizePipeline":
        """
        Wire the production collaborators.

        Raises:
            ConfigurationError: if the allow-list is empty.
        """
        from resize_proxy.core.host_allowlist import HostAllowlist
        from resize_proxy.infra.image_codec import configure_decoder
        from resize_proxy.infra.image_fetcher import ImageFetcher

        allowlist = HostAllowlist.from_settings(settings)
        configure_decoder(settings.max_source_pixels_millions * 1_000_000)
        fetcher = ImageFetcher.from_settings(settings, redirect_guard=allowlist.is_allowed)

        logger.info(f"Resize pipeline ready: {len(allowlist)} allowed host(s)")
        return cls(allowlist=allowlist, fetcher=fetcher, jpeg_quality=settings.jpeg_quality)

    async def resize(
        self,
        request: ResizeRequest,
        request_id: str | None = None,
    ) -> ResizedOutput:
        log_ctx = LogContext(logger, request_id=request_id, host=request.host)

        try:
            mode = self._check_mode(request.mode)
        except ResizeError as exc:
            AppMetrics.resize_failed(exc.kind)
            raise

        AppMetrics.resize_requested(mode.value)

        try:
            with AppMetrics.track_resize_time(mode.value):
                output = await self._run(request, mode, log_ctx)
        except ResizeError as exc:
            AppMetrics.resize_failed(exc.kind)
            log_ctx.info(
                f"Resize failed: {exc.__class__.__name__}: {exc.detail}",
                extra={"error_kind": exc.kind, "mode": mode.value},
            )
            raise

        AppMetrics.resize_succeeded(mode.value)
        log_ctx.info(
            f"Resize complete: {mask_url(request.url)} mode={mode.value} "
            f"-> {output.width}x{output.height} ({output.size_bytes} bytes)"
        )
        return output

    @staticmethod
    def _check_mode(mode) -> ResizeMode:
        try:
            return ResizeMode(mode)
        except ValueError:
            raise InvalidInputError(f"Unknown resize mode: {mode!r}") from None

    async def _run(
        self,
        request: ResizeRequest,
        mode: ResizeMode,
        log_ctx: LogContext,
    ) -> ResizedOutput:
        if not self.allowlist.is_allowed(request.url):
            log_ctx.warning("Rejected source host not on allow-list")
            raise ForbiddenHostError()

        image = await self.fetcher.fetch(request.url)
        log_ctx.debug(f"Source image {image.width}x{image.height} mode={image.mode}")

        # Resize and encode are CPU-bound; keep them off the event loop
        return await asyncio.to_thread(
            self._transform, image, mode, request.height, request.width
        )

    def _transform(
        self,
        image: Image.Image,
        mode: ResizeMode,
        height: int | None,
        width: int | None,
    ) -> ResizedOutput:
        try:
            resized = resize_image(image, mode, height=height, width=width)
        except (OSError, ValueError, MemoryError) as e:
            raise InternalError(f"Resize failed: {type(e).__name__}") from e
        finally:
            image.close()

        out_width, out_height = resized.size
        try:
            data = encode_jpeg(resized, quality=self.jpeg_quality)
        finally:
            resized.close()

        if not data:
            raise InternalError("Encoder produced no data")

        return ResizedOutput(
            data=data,
            width=out_width,
            height=out_height,
            content_type=JPEG_CONTENT_TYPE,
        )
