# resize_proxy/infra/image_codec.py
"""
Image decode/encode on top of Pillow.

Security features:
- Truncated images are rejected, never partially decoded
- Decompression bomb limit (Pillow MAX_IMAGE_PIXELS)
- Parser failures of any kind surface as DecodeError
- Output is always re-encoded, so no source metadata is passed through
"""
from __future__ import annotations

import io

from PIL import Image, ImageFile

from resize_proxy.core.errors import DecodeError, InternalError
from resize_proxy.infra.logging_config import get_logger

logger = get_logger(__name__)

# Do NOT allow truncated images. Partial data decodes into grey/black bands;
# better to reject the source than to serve a broken thumbnail.
ImageFile.LOAD_TRUNCATED_IMAGES = False

# PARSING limit for source images, not an output limit.
DEFAULT_MAX_SOURCE_PIXELS = 50_000_000
Image.MAX_IMAGE_PIXELS = DEFAULT_MAX_SOURCE_PIXELS

# Modes the resampler and the JPEG encoder handle without conversion
_NATIVE_MODES = ("RGB", "RGBA", "L", "LA")

JPEG_CONTENT_TYPE = "image/jpeg"


def configure_decoder(max_pixels: int) -> None:
    """Set the decompression bomb limit (pixels)."""
    Image.MAX_IMAGE_PIXELS = max_pixels
    logger.debug(f"Decoder pixel limit set to {max_pixels:,}")


def _normalize_mode(img: Image.Image) -> Image.Image:
    """Convert palette/bitonal/CMYK/16-bit images to RGB or RGBA."""
    if img.mode in _NATIVE_MODES:
        return img
    has_alpha = img.mode in ("PA", "RGBa", "La") or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def _check_pixel_limit(img: Image.Image) -> None:
    """
    Reject images above ``Image.MAX_IMAGE_PIXELS``.

    Pillow itself only raises above twice the limit and merely warns in
    between, so the limit is enforced here.
    """
    limit = Image.MAX_IMAGE_PIXELS
    width, height = img.size
    if limit and width * height > limit:
        img.close()
        logger.warning(f"Source image {width}x{height} exceeds pixel limit {limit:,}")
        raise DecodeError(
            f"Image has {width * height:,} pixels, exceeds limit of {limit:,}"
        )


def decode_image(data: bytes) -> Image.Image:
    """
    Decode raw bytes into a fully loaded Pillow image.

    Raises:
        DecodeError: if the bytes are not a decodable image.
    """
    if not data:
        raise DecodeError("Empty image data")

    try:
        img = Image.open(io.BytesIO(data))
        # Size is known from the header; reject before any pixel data is decoded
        _check_pixel_limit(img)
        # Force decompression now; most malformed-file failures trigger here
        img.load()
    except DecodeError:
        raise
    except Image.DecompressionBombError as e:
        logger.warning(f"Decompression bomb rejected: {e}")
        raise DecodeError("Image exceeds pixel limit") from e
    except MemoryError as e:
        logger.error("Memory error during image decode")
        raise DecodeError("Image too large to decode") from e
    except (OSError, SyntaxError, ValueError) as e:
        # UnidentifiedImageError is an OSError
        logger.warning(f"Image decode error (unsupported or malformed): {e}")
        raise DecodeError("Failed to decode image: corrupted or unsupported format") from e
    except Exception as e:
        logger.error(f"Unexpected error during image decode: {type(e).__name__}: {e}")
        raise DecodeError("Failed to decode image") from e

    logger.debug(
        f"Decoded {img.format or 'unknown'} image {img.width}x{img.height} mode={img.mode}"
    )
    return _normalize_mode(img)


def _to_rgb(img: Image.Image) -> Image.Image:
    """Flatten transparency onto white and drop alpha for JPEG output."""
    if img.mode in ("RGBA", "LA"):
        background = Image.new("RGB", img.size, (255, 255, 255))
        rgba = img.convert("RGBA") if img.mode == "LA" else img
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode not in ("RGB", "L"):
        return img.convert("RGB")
    return img


def encode_jpeg(img: Image.Image, quality: int = 85) -> bytes:
    """
    Encode an in-memory image as JPEG.

    Raises:
        InternalError: if the encoder fails (not a caller error).
    """
    output = io.BytesIO()
    try:
        _to_rgb(img).save(output, format="JPEG", quality=quality, optimize=True)
    except (OSError, ValueError) as e:
        logger.error(f"JPEG encode failed for {img.width}x{img.height} mode={img.mode}: {e}")
        raise InternalError("Failed to encode image") from e
    return output.getvalue()
