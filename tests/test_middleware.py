# tests/test_middleware.py
"""Tests for resize_proxy/transport/middleware.py — request ID, error handling."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from resize_proxy.transport.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    ErrorHandlingMiddleware,
)
from resize_proxy.transport.security import SecurityHeaders, sanitize_error_message
from resize_proxy.core.errors import InternalError, InvalidInputError


def _build_app(raise_for: set[str] | None = None):
    """Build a minimal FastAPI app with middleware for testing."""
    app = FastAPI()
    # Order matters: ErrorHandling wraps RequestLogging wraps RequestID
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware, enabled=True)
    app.add_middleware(RequestIDMiddleware)

    raise_for = raise_for or set()

    @app.get("/test")
    def test_endpoint():
        if "/test" in raise_for:
            raise RuntimeError("boom")
        return {"ok": True}

    return app


# ============================================================================
# RequestIDMiddleware
# ============================================================================

class TestRequestIDMiddleware:
    def test_generates_request_id(self):
        app = _build_app()
        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        assert "X-Request-ID" in resp.headers
        # Should be a UUID-style string
        rid = resp.headers["X-Request-ID"]
        assert len(rid) >= 32  # UUID has 36 chars with dashes

    def test_preserves_existing_request_id(self):
        app = _build_app()
        client = TestClient(app)
        custom_id = "my-custom-request-id-123"
        resp = client.get("/test", headers={"X-Request-ID": custom_id})
        assert resp.status_code == 200
        assert resp.headers["X-Request-ID"] == custom_id

    def test_malformed_request_id_replaced(self):
        app = _build_app()
        client = TestClient(app)
        for bad in ("a" * 1000, "id with spaces", "<script>"):
            resp = client.get("/test", headers={"X-Request-ID": bad})
            assert resp.headers["X-Request-ID"] != bad
            assert len(resp.headers["X-Request-ID"]) == 36


# ============================================================================
# ErrorHandlingMiddleware
# ============================================================================

class TestErrorHandlingMiddleware:
    def test_normal_request_passes_through(self):
        app = _build_app()
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/test")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_generic_error_returns_500(self):
        app = _build_app(raise_for={"/test"})
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/test")
        assert resp.status_code == 500
        data = resp.json()
        assert data["error"] == "Internal server error"
        assert "boom" not in resp.text
        assert "request_id" in data


# ============================================================================
# Security helpers
# ============================================================================

class TestSecurityHeaders:
    def test_headers_added(self):
        from fastapi.responses import Response

        resp = SecurityHeaders.add_security_headers(Response(content=b"x"))
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert "Strict-Transport-Security" not in resp.headers

    def test_hsts_when_requested(self):
        from fastapi.responses import Response

        resp = SecurityHeaders.add_security_headers(Response(content=b"x"), hsts=True)
        assert resp.headers["Strict-Transport-Security"].startswith("max-age=")

    def test_existing_cache_control_kept(self):
        from fastapi.responses import Response

        resp = Response(content=b"x", headers={"Cache-Control": "public, max-age=60"})
        SecurityHeaders.add_security_headers(resp)
        assert resp.headers["Cache-Control"] == "public, max-age=60"


class TestSanitizeErrorMessage:
    def test_resize_error_detail_is_public(self):
        err = InvalidInputError("height must be a positive integer")
        assert sanitize_error_message(err, is_production=True) == err.detail

    def test_internal_error_hidden_in_production(self):
        err = InternalError("Crop window outside raster")
        assert sanitize_error_message(err, is_production=True) == "Internal server error"
        assert sanitize_error_message(err, is_production=False) == err.detail

    def test_unexpected_errors_generic_in_production(self):
        assert sanitize_error_message(KeyError("secret"), is_production=True) == "An error occurred"
        assert sanitize_error_message(ValueError("x"), is_production=True) == "Invalid input"
