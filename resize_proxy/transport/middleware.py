# resize_proxy/transport/middleware.py
import re
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from resize_proxy.infra.logging_config import get_logger, LogContext

logger = get_logger(__name__)

# Client-supplied IDs are echoed in headers and logs; anything else is replaced
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID (client's if well-formed, else a new UUID)"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID", "")
        if not _REQUEST_ID_RE.match(request_id):
            request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access line per request: method, path, status, duration.

    The query string carries the source URL and is never logged here.
    """

    def __init__(self, app: ASGIApp, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled:
            return await call_next(request)

        log_ctx = LogContext(logger, request_id=getattr(request.state, "request_id", None))
        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            log_ctx.error(
                f"{route} raised {exc.__class__.__name__} after {_elapsed_ms(started):.1f}ms",
                exc_info=True,
            )
            raise

        duration_ms = _elapsed_ms(started)
        log = log_ctx.warning if response.status_code >= 500 else log_ctx.info
        log(
            f"{route} -> {response.status_code} in {duration_ms:.1f}ms",
            extra={
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "client_ip": request.client.host if request.client else None,
            },
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last-resort 500 for exceptions nothing else handled"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", None)
            LogContext(logger, request_id=request_id).error(
                f"Unhandled exception: {exc.__class__.__name__}",
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "request_id": request_id},
            )
