"""
Security headers middleware.

Sets the OWASP recommended response headers (see
https://owasp.org/www-project-secure-headers/) on every response. API
responses are also marked Cache-Control: no-store because they carry
driver names, store contacts and chat messages.
"""

import logging
from typing import Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# The interactive docs load Swagger UI assets from a CDN and run inline scripts
DOCS_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "img-src 'self' data: https:; "
    "frame-ancestors 'none'"
)

# Everything else is JSON or an uploaded image
API_CSP = (
    "default-src 'none'; "
    "img-src 'self' data:; "
    "frame-ancestors 'none'; "
    "base-uri 'none'; "
    "form-action 'none'"
)

STATIC_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=(), usb=()",
}

_DOCS_PREFIXES = ("/docs", "/redoc")
_API_PREFIX = "/api/"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all HTTP responses.

    Args:
        enable_csp: Whether to send Content-Security-Policy
        csp_policy: Policy for non-docs paths (defaults to API_CSP)

    Example:
        app.add_middleware(SecurityHeadersMiddleware)
        app.add_middleware(SecurityHeadersMiddleware, csp_policy="default-src 'none'")
    """

    def __init__(self, app, enable_csp: bool = True, csp_policy: str | None = None):
        super().__init__(app)
        self.enable_csp = enable_csp
        self.csp_policy = csp_policy or API_CSP

        logger.info(
            "Security headers middleware initialized",
            extra={"enable_csp": enable_csp, "custom_csp": csp_policy is not None},
        )

    def _csp_for(self, path: str) -> str:
        return DOCS_CSP if path.startswith(_DOCS_PREFIXES) else self.csp_policy

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        path = request.url.path

        response.headers.update(STATIC_HEADERS)
        if self.enable_csp:
            response.headers["Content-Security-Policy"] = self._csp_for(path)
        if path.startswith(_API_PREFIX):
            response.headers.setdefault("Cache-Control", "no-store")

        return response
