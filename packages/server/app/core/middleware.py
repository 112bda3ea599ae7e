"""
Security middleware: origin allow-list and security headers.
"""

from __future__ import annotations

from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://fastapi.tiangolo.com; "
        "frame-ancestors 'none';"
    ),
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response


# ---------------------------------------------------------------------------
# Origin allow-list
# ---------------------------------------------------------------------------

class OriginAllowListMiddleware(BaseHTTPMiddleware):
    """
    Reject cross-origin requests from origins outside the allow-list.

    Requests without an Origin header (curl, server-to-server, mobile) pass.
    CORS response headers are still added by Starlette's CORSMiddleware.
    """

    def __init__(self, app: ASGIApp, allowed_origins: Iterable[str]):
        super().__init__(app)
        self.allowed_origins = {origin.rstrip("/") for origin in allowed_origins}

    async def dispatch(self, request: Request, call_next) -> Response:
        origin = request.headers.get("Origin")
        if origin is None or origin.rstrip("/") in self.allowed_origins:
            return await call_next(request)

        return JSONResponse(
            status_code=403,
            content={
                "error": "The CORS policy for this site does not allow access from the specified Origin.",
                "code": "cors_rejected",
            },
        )
