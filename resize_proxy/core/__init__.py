# resize_proxy/core/__init__.py
"""
Core resize logic -- request model, allow-list, geometry and pipeline.

Canonical imports:
    from resize_proxy.core import ResizeRequest, HostAllowlist
    from resize_proxy.core.pipeline import ResizePipeline
    from resize_proxy.core.resizer import fit, fill
    from resize_proxy.core.errors import ResizeError
"""
from resize_proxy.core.domain import (  # noqa: F401
    ResizeMode,
    ResizeRequest,
    ResizedOutput,
)
from resize_proxy.core.errors import (  # noqa: F401
    ResizeError,
    InvalidInputError,
    ForbiddenHostError,
    UpstreamError,
    UpstreamStatusError,
    SizeUnknownError,
    ResponseTooLargeError,
    FetchTimeoutError,
    DecodeError,
    InternalError,
    ConfigurationError,
)
from resize_proxy.core.host_allowlist import HostAllowlist  # noqa: F401
