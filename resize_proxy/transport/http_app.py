# resize_proxy/transport/http_app.py
"""
HTTP surface of the resize proxy.

Endpoints:
1. GET /resize   - fetch, resize and return a JPEG
2. GET /health   - liveness probe
3. GET /metrics  - in-process counters (when ENABLE_METRICS)

Route handlers are thin adapters: parse query → call pipeline → map
ResizeError to a JSON error response.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from resize_proxy.config import settings
from resize_proxy.core.domain import ResizeRequest
from resize_proxy.core.errors import ConfigurationError, InvalidInputError, ResizeError
from resize_proxy.core.pipeline import ResizePipeline
from resize_proxy.infra.http_client import close_all_sessions
from resize_proxy.infra.logging_config import setup_logging, get_logger
from resize_proxy.infra.metrics import AppMetrics, get_metrics_collector
from resize_proxy.transport.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    ErrorHandlingMiddleware,
)
from resize_proxy.transport.security import SecurityHeaders, sanitize_error_message

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_pipeline(request: Request) -> ResizePipeline:
    """Get pipeline from app state"""
    return request.app.state.pipeline


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


# ============================================================================
# MIDDLEWARE FOR SECURITY HEADERS
# ============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        return SecurityHeaders.add_security_headers(
            response,
            hsts=settings.is_production or settings.is_staging,
        )


# ============================================================================
# LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""

    # STARTUP
    logger.info(f"Starting resize proxy: env={settings.app_env}")

    if getattr(fastapi_app.state, "pipeline", None) is None:
        try:
            fastapi_app.state.pipeline = ResizePipeline.from_settings(settings)
        except ConfigurationError as exc:
            logger.critical(f"Invalid configuration: {exc}")
            raise

    logger.info(
        f"Fetch settings: timeout={settings.fetch_timeout_seconds}s, "
        f"max_download={settings.max_download_mb}MB, "
        f"max_dimension={settings.max_target_dimension}"
    )
    logger.info("Application startup complete")

    yield

    # SHUTDOWN
    logger.info("Shutting down application")
    await close_all_sessions()
    logger.info("Application shutdown complete")


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

async def resize_error_handler(request: Request, exc: ResizeError):
    """Map pipeline errors to their HTTP status"""
    if exc.status_code >= 500:
        logger.error(
            f"Resize error: {exc.__class__.__name__}: {exc.detail}",
            extra={"status_code": exc.status_code, "request_id": _request_id(request)},
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": sanitize_error_message(exc, settings.is_production),
            "request_id": _request_id(request),
        },
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed query parameters are a caller error (400)"""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid input", "request_id": _request_id(request)},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with appropriate logging"""
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={"error": sanitize_error_message(exc, settings.is_production)},
    )


# ============================================================================
# ROUTES
# ============================================================================

router = APIRouter()


@router.get("/resize")
async def resize(
    request: Request,
    url: Optional[str] = Query(None, description="Absolute URL of the source image"),
    mode: Optional[str] = Query(None, description="fit (default) or fill"),
    height: Optional[str] = Query(None, description="Target height in pixels"),
    width: Optional[str] = Query(None, description="Target width in pixels"),
    pipeline: ResizePipeline = Depends(get_pipeline),
):
    """
    Fetch ``url`` from an allow-listed host, resize it and return a JPEG.

    Dimensions are parsed here (not by FastAPI) so that every malformed
    parameter becomes the same InvalidInputError → 400.
    """
    try:
        resize_request = ResizeRequest.parse(
            url=url,
            mode=mode,
            height=height,
            width=width,
            max_dimension=settings.max_target_dimension,
        )
    except InvalidInputError as exc:
        AppMetrics.resize_failed(exc.kind)
        raise
    output = await pipeline.resize(resize_request, request_id=_request_id(request))

    return Response(
        content=output.data,
        media_type=output.content_type,
        headers={"X-Image-Size": f"{output.width}x{output.height}"},
    )


@router.get("/health")
def health():
    """
    Basic health check - PUBLIC endpoint.
    Used by load balancers, monitoring, etc.
    """
    return {"status": "healthy"}


@router.get("/metrics")
def metrics():
    """In-process resize metrics."""
    if not settings.enable_metrics:
        raise HTTPException(status_code=404, detail="Not found")
    return get_metrics_collector().get_metrics()


@router.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
async def catch_all(path: str):
    """
    Catch-all route for undefined endpoints.
    Returns generic 404 without revealing information.
    """
    logger.warning(f"404 - Unknown route accessed: {path}")
    raise HTTPException(status_code=404, detail="Not found")


# ============================================================================
# CREATE APP
# ============================================================================

def create_app(pipeline: ResizePipeline | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    ``pipeline`` is normally built from settings during startup; passing one
    in skips that (tests, embedding).
    """
    fastapi_app = FastAPI(
        title="Resize Proxy",
        description="Fetch, resize and re-encode images from allow-listed hosts",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )
    fastapi_app.state.pipeline = pipeline

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    fastapi_app.add_middleware(SecurityHeadersMiddleware)

    # Add custom middleware
    fastapi_app.add_middleware(ErrorHandlingMiddleware)
    fastapi_app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
    fastapi_app.add_middleware(RequestIDMiddleware)

    fastapi_app.add_exception_handler(ResizeError, resize_error_handler)
    fastapi_app.add_exception_handler(RequestValidationError, validation_exception_handler)
    fastapi_app.add_exception_handler(HTTPException, http_exception_handler)
    fastapi_app.add_exception_handler(Exception, general_exception_handler)

    fastapi_app.include_router(router)
    return fastapi_app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "resize_proxy.transport.http_app:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,  # Disable in prod (use middleware logging)
        server_header=False,
        date_header=False,
    )
