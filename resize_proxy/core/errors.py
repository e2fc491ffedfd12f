# resize_proxy/core/errors.py
"""
Typed errors for the resize pipeline.

Each error maps to a specific HTTP status code.  The transport layer
catches ``ResizeError`` subtypes and converts them to JSON error responses
without embedding pipeline logic in the route handlers.

The hierarchy is closed: every failure the pipeline can surface is one of
the classes below, so the boundary layer can match on the error kind.
"""
from __future__ import annotations


class ResizeError(Exception):
    """Base class for all resize pipeline errors."""

    status_code: int = 500
    kind: str = "internal"

    def __init__(self, detail: str = "Internal error"):
        self.detail = detail
        super().__init__(detail)


class InvalidInputError(ResizeError):
    """Malformed URL, unparseable dimensions or unknown mode (400)."""

    status_code = 400
    kind = "invalid_input"


class ForbiddenHostError(ResizeError):
    """Source host is not on the allow-list (403).

    The detail never names the permitted hosts.
    """

    status_code = 403
    kind = "forbidden_host"

    def __init__(self, detail: str = "Invalid hostname"):
        super().__init__(detail)


class UpstreamError(ResizeError):
    """The source image could not be fetched (502)."""

    status_code = 502
    kind = "upstream"


class UpstreamStatusError(UpstreamError):
    """Source answered with a non-success HTTP status."""

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"Request was not successful: HTTP {status}")


class SizeUnknownError(UpstreamError):
    """Source response declared no usable Content-Length."""

    kind = "size_unknown"

    def __init__(self, detail: str = "Content-Length too small"):
        super().__init__(detail)


class ResponseTooLargeError(UpstreamError):
    """Source response exceeds the configured download cap."""

    kind = "too_large"


class FetchTimeoutError(UpstreamError):
    """Source did not answer within the fetch timeout (504)."""

    status_code = 504
    kind = "timeout"

    def __init__(self, detail: str = "Timed out fetching source image"):
        super().__init__(detail)


class DecodeError(ResizeError):
    """Fetched bytes are not a decodable image (422)."""

    status_code = 422
    kind = "decode"


class InternalError(ResizeError):
    """Encoder failure or a broken geometric invariant (500)."""

    status_code = 500
    kind = "internal"


class ConfigurationError(RuntimeError):
    """Missing or malformed process configuration. Fatal at startup."""
