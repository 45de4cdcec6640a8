"""
Security Headers Middleware - HTTP security headers for every response

Adds CSP, X-Content-Type-Options, X-Frame-Options, Referrer-Policy,
Permissions-Policy, HSTS (production only) and no-store caching for API
responses.

Usage:
    from supportdesk.middleware.security_headers import SecurityHeadersMiddleware

    app.add_middleware(SecurityHeadersMiddleware, environment="production")
"""

from typing import Callable, List, Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds security headers to all HTTP responses.

    HSTS is only sent in production.
    """

    def __init__(
        self,
        app,
        environment: str = "development",
        csp_directives: Optional[dict] = None,
        hsts_max_age: int = 31536000,  # 1 year
        excluded_paths: Optional[List[str]] = None,
        api_prefixes: Optional[List[str]] = None,
    ):
        super().__init__(app)
        self.is_production = environment == "production"
        self.hsts_max_age = hsts_max_age
        self.excluded_paths = excluded_paths or []
        self.api_prefixes = api_prefixes or ["/api/"]
        self.csp = self._build_csp(csp_directives)

    def _build_csp(self, custom_directives: Optional[dict] = None) -> str:
        directives = {
            "default-src": "'self'",
            "script-src": "'self'",
            "style-src": "'self' 'unsafe-inline'",  # Swagger UI
            "img-src": "'self' data: https:",
            "connect-src": "'self'",
            "frame-ancestors": "'none'",
            "base-uri": "'self'",
            "object-src": "'none'",
        }
        if custom_directives:
            directives.update(custom_directives)
        return "; ".join(f"{key} {value}" for key, value in directives.items())

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return response

        self._add_security_headers(request, response)
        return response

    def _add_security_headers(self, request: Request, response: Response) -> None:
        response.headers["Content-Security-Policy"] = self.csp
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(), geolocation=(), microphone=(), payment=(), usb=()"

        if self.is_production:
            response.headers["Strict-Transport-Security"] = (
                f"max-age={self.hsts_max_age}; includeSubDomains"
            )

        # Conversations must not end up in shared caches
        if any(request.url.path.startswith(prefix) for prefix in self.api_prefixes):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
            response.headers["Pragma"] = "no-cache"
