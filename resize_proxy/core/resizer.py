# resize_proxy/core/resizer.py
"""
Geometric resize policies.

- **fit**  – scale uniformly so the whole image fits inside the target box.
             Aspect ratio is preserved and nothing is cropped.
- **fill** – scale uniformly so the image covers the target box, then crop
             the centre to exactly the box size.

A missing target dimension defaults to the source size on that axis, so a
request without either dimension returns the image at its original size.

Both transforms are pure: they never mutate the input and always return a
new image.  Sizes are computed with integer arithmetic so results are
deterministic for a given input size and target.
"""
from __future__ import annotations

from typing import Optional

from PIL import Image

from resize_proxy.core.domain import ResizeMode
from resize_proxy.core.errors import InternalError, InvalidInputError
from resize_proxy.infra.logging_config import get_logger

logger = get_logger(__name__)

RESAMPLE_FILTER = Image.Resampling.LANCZOS


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def _round_div(a: int, b: int) -> int:
    """Round a / b to the nearest integer, halves rounding up."""
    return (2 * a + b) // (2 * b)


def fit_size(
    source: tuple[int, int],
    height: Optional[int] = None,
    width: Optional[int] = None,
) -> tuple[int, int]:
    """
    Compute the (width, height) of ``source`` scaled to fit the box.

    The constraining axis lands exactly on the box edge; the other axis is
    rounded to the nearest pixel, never exceeding the box and never below 1.
    """
    src_w, src_h = source
    box_w = width if width is not None else src_w
    box_h = height if height is not None else src_h

    # box_w / src_w <= box_h / src_h  →  width is the constraining axis
    if box_w * src_h <= box_h * src_w:
        new_w = box_w
        new_h = min(box_h, max(1, _round_div(src_h * box_w, src_w)))
    else:
        new_h = box_h
        new_w = min(box_w, max(1, _round_div(src_w * box_h, src_h)))

    return new_w, new_h


def fill_geometry(
    source: tuple[int, int],
    height: Optional[int] = None,
    width: Optional[int] = None,
) -> tuple[tuple[int, int], tuple[int, int, int, int]]:
    """
    Compute the scaled size and crop box for a fill resize.

    Returns:
        ((scaled_w, scaled_h), (left, top, right, bottom))

    The scale factor is ``max(target_h / src_h, target_w / src_w)``.  The
    scaled size is rounded up so it always covers the target, and the crop
    origin is clamped into the scaled raster.
    """
    src_w, src_h = source
    target_w = width if width is not None else src_w
    target_h = height if height is not None else src_h

    # target_w / src_w >= target_h / src_h  →  width ratio wins
    if target_w * src_h >= target_h * src_w:
        scaled_w = target_w
        scaled_h = max(target_h, _ceil_div(src_h * target_w, src_w))
    else:
        scaled_h = target_h
        scaled_w = max(target_w, _ceil_div(src_w * target_h, src_h))

    x0 = min(max((scaled_w - target_w) // 2, 0), scaled_w - target_w)
    y0 = min(max((scaled_h - target_h) // 2, 0), scaled_h - target_h)

    return (scaled_w, scaled_h), (x0, y0, x0 + target_w, y0 + target_h)


def fit(
    image: Image.Image,
    height: Optional[int] = None,
    width: Optional[int] = None,
) -> Image.Image:
    """Scale ``image`` so that it fits inside ``width`` x ``height``."""
    new_size = fit_size(image.size, height=height, width=width)
    if new_size == image.size:
        return image.copy()
    return image.resize(new_size, RESAMPLE_FILTER)


def fill(
    image: Image.Image,
    height: Optional[int] = None,
    width: Optional[int] = None,
) -> Image.Image:
    """
    Scale ``image`` to cover ``width`` x ``height`` and centre-crop it.

    The crop window is mapped back into source coordinates and only that
    region is resampled, so the full scaled raster is never allocated.
    """
    scaled_size, box = fill_geometry(image.size, height=height, width=width)
    left, top, right, bottom = box
    scaled_w, scaled_h = scaled_size

    if left < 0 or top < 0 or right > scaled_w or bottom > scaled_h:
        raise InternalError(
            f"Crop window {box} outside scaled raster {scaled_size}"
        )

    if scaled_size == image.size and box == (0, 0, scaled_w, scaled_h):
        return image.copy()

    src_w, src_h = image.size
    source_box = (
        left * src_w / scaled_w,
        top * src_h / scaled_h,
        min(src_w, right * src_w / scaled_w),
        min(src_h, bottom * src_h / scaled_h),
    )
    return image.resize((right - left, bottom - top), RESAMPLE_FILTER, box=source_box)


def resize_image(
    image: Image.Image,
    mode: ResizeMode,
    height: Optional[int] = None,
    width: Optional[int] = None,
) -> Image.Image:
    """Dispatch to :func:`fit` or :func:`fill` by mode."""
    if mode == ResizeMode.FILL:
        result = fill(image, height=height, width=width)
    elif mode == ResizeMode.FIT:
        result = fit(image, height=height, width=width)
    else:
        raise InvalidInputError(f"Unknown resize mode: {mode!r}")

    logger.debug(
        f"Resized {image.width}x{image.height} -> {result.width}x{result.height} "
        f"(mode={ResizeMode(mode).value})"
    )
    return result
