# resize_proxy/transport/security.py
"""
Response hardening for the public proxy endpoint.

- OWASP security headers on every response
- Error message sanitization (no internals leaked in production)
"""
from resize_proxy.core.errors import InternalError, ResizeError


class SecurityHeaders:
    """
    Middleware helper to add security headers.
    Implements OWASP recommended security headers.
    """

    @staticmethod
    def add_security_headers(response, hsts: bool = False):
        """
        Add security headers to response.

        OWASP recommended headers for API security:
        https://cheatsheetseries.owasp.org/cheatsheets/REST_Security_Cheat_Sheet.html
        """

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME sniffing (image/jpeg must stay image/jpeg)
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Referrer policy - don't leak source URLs to third parties
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Content Security Policy (strict: responses are images or JSON)
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Cache control (default no-cache, endpoints can override)
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        if hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # Resized images are meant to be embedded by other origins
        response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"

        # Hide server information
        if "Server" in response.headers:
            del response.headers["Server"]

        return response


def sanitize_error_message(error: Exception, is_production: bool) -> str:
    """
    Sanitize error messages for external responses.
    Pipeline errors carry a user-safe detail and are returned as-is,
    except InternalError in production.
    Other exceptions: detail in dev, generic text in production.
    """
    if isinstance(error, ResizeError):
        if is_production and isinstance(error, InternalError):
            return "Internal server error"
        return error.detail

    if not is_production:
        return str(error)

    generic_messages = {
        "ValueError": "Invalid input",
        "ConnectionError": "Service temporarily unavailable",
        "TimeoutError": "Request timeout",
    }

    return generic_messages.get(type(error).__name__, "An error occurred")
