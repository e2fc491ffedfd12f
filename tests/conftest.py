# tests/conftest.py
"""Pytest configuration and fixtures"""
import io
import os
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Settings are read at import time; keep tests independent of a local .env
os.environ.setdefault("URL_WHITELIST", "good.example")
os.environ.setdefault("ENABLE_REQUEST_LOGGING", "false")


def _make_image(width: int, height: int, mode: str = "RGB", color=(200, 30, 30)) -> Image.Image:
    """Solid-colour test image with a contrasting left half."""
    img = Image.new(mode, (width, height), color)
    if mode in ("RGB", "RGBA") and width > 1:
        img.paste((10, 10, 240), (0, 0, width // 2, height))
    return img


def _encode(img: Image.Image, fmt: str = "JPEG") -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image():
    """Factory: make_image(width, height, mode="RGB") -> PIL image"""
    return _make_image


@pytest.fixture
def encode_image():
    """Factory: encode_image(img, fmt="JPEG") -> bytes"""
    return _encode


@pytest.fixture
def jpeg_400x400() -> bytes:
    """A 400x400 JPEG, the source image of the end-to-end scenarios"""
    return _encode(_make_image(400, 400))


@pytest.fixture
def png_with_alpha() -> bytes:
    img = Image.new("RGBA", (64, 32), (0, 128, 0, 0))
    img.paste((0, 128, 0, 255), (0, 0, 32, 32))
    return _encode(img, "PNG")


@pytest.fixture
def good_url():
    return "https://good.example/img.jpg"


@pytest.fixture
def evil_url():
    return "https://evil.example/img.jpg"
