# resize_proxy/core/ports.py
from __future__ import annotations
from typing import Protocol

from PIL import Image


class ImageSource(Protocol):
    async def fetch(self, url: str) -> Image.Image:
        """
        Download and decode the image at ``url``.

        Raises UpstreamError / DecodeError subclasses on failure.
        """
        ...


class HostPolicy(Protocol):
    def is_allowed(self, url: str) -> bool: ...
