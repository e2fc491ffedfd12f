# resize_proxy/core/domain.py
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from urllib.parse import urlsplit

from resize_proxy.core.errors import InvalidInputError

# Largest target edge accepted when the caller does not pass a limit
DEFAULT_MAX_DIMENSION = 8192

ALLOWED_URL_SCHEMES = ("http", "https")

# Bounded so int() never sees an oversized digit string
_DIGITS_RE = re.compile(r"[0-9]{1,10}")


class ResizeMode(str, Enum):
    """Resize policy selected by the ``mode`` query parameter."""
    FIT = "fit"
    FILL = "fill"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ResizeMode":
        if value is None:
            return cls.FIT
        try:
            return cls(value)
        except ValueError:
            raise InvalidInputError(f"Unknown resize mode: {value!r}") from None


def host_of(url: str) -> Optional[str]:
    """
    Host component of ``url`` or None when it has none.

    Lowercased by the URL parser; internationalized names are returned in
    their ASCII (punycode) form so they compare against ``xn--`` entries.
    """
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    if host.isascii():
        return host
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return None


def validate_url(url: Optional[str]) -> str:
    """Require an absolute http(s) URL with a host component."""
    if not url or not isinstance(url, str):
        raise InvalidInputError("Invalid URL")

    try:
        parsed = urlsplit(url.strip())
        # .port raises on out-of-range or non-numeric ports
        parsed.port
    except ValueError:
        raise InvalidInputError("Invalid URL") from None

    if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES:
        raise InvalidInputError("Invalid URL")
    if not parsed.hostname:
        raise InvalidInputError("Invalid URL")

    return parsed.geturl()


def _parse_dimension(
    name: str,
    value: Union[int, str, None],
    max_dimension: int,
) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (bool, float)):
        raise InvalidInputError(f"{name} must be a positive integer")

    if isinstance(value, str):
        # Plain decimal digits only; int() would also take "+5", " 5" and "1_000"
        if not _DIGITS_RE.fullmatch(value):
            raise InvalidInputError(f"{name} must be a positive integer")
        number = int(value)
    elif isinstance(value, int):
        number = value
    else:
        raise InvalidInputError(f"{name} must be a positive integer")

    if number <= 0:
        raise InvalidInputError(f"{name} must be a positive integer")
    if number > max_dimension:
        raise InvalidInputError(f"{name} must not exceed {max_dimension}")
    return number


@dataclass(frozen=True)
class ResizeRequest:
    """
    A validated resize call.

    If both ``height`` and ``width`` are None the output keeps the source
    dimensions.
    """
    url: str
    mode: ResizeMode = ResizeMode.FIT
    height: Optional[int] = None
    width: Optional[int] = None

    @property
    def host(self) -> Optional[str]:
        return host_of(self.url)

    @classmethod
    def parse(
        cls,
        url: Optional[str],
        mode: Optional[str] = None,
        height: Union[int, str, None] = None,
        width: Union[int, str, None] = None,
        max_dimension: int = DEFAULT_MAX_DIMENSION,
    ) -> "ResizeRequest":
        """
        Build a request from raw query parameters.

        Raises:
            InvalidInputError: malformed URL, dimension or mode.
        """
        return cls(
            url=validate_url(url),
            mode=ResizeMode.parse(mode),
            height=_parse_dimension("height", height, max_dimension),
            width=_parse_dimension("width", width, max_dimension),
        )


@dataclass
class ResizedOutput:
    """Encoded result returned to the caller"""
    data: bytes
    width: int
    height: int
    content_type: str = "image/jpeg"

    @property
    def size_bytes(self) -> int:
        return len(self.data)
