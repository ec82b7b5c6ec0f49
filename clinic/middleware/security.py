from __future__ import annotations

from collections.abc import Callable
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def _is_secure_request(request: Request) -> bool:
    # Honor reverse proxy headers if present
    xf_proto = request.headers.get("x-forwarded-proto")
    if xf_proto:
        return "https" in xf_proto
    return request.url.scheme == "https"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Sets a hardened set of security headers on every response.
    - HTTPS-aware HSTS
    - Locked-down CSP (the service only returns JSON)
    - Legacy browser protections the contact endpoint has always sent
    """

    def __init__(
        self,
        app,
        *,
        csp_directives: Iterable[str] | None = None,
        hsts: str = "max-age=63072000; includeSubDomains",
        referrer_policy: str = "strict-origin-when-cross-origin",
        frame_options: str = "DENY",
        xss_protection: str | None = "1; mode=block",
        enable_hsts_on_http: bool = False,
        skip_hsts_hosts: set[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.hsts = hsts
        self.referrer_policy = referrer_policy
        self.frame_options = frame_options
        self.xss_protection = xss_protection
        self.enable_hsts_on_http = enable_hsts_on_http
        self.skip_hsts_hosts = skip_hsts_hosts or {"localhost", "127.0.0.1"}

        default_csp = [
            "default-src 'none'",
            "base-uri 'none'",
            "frame-ancestors 'none'",
            "form-action 'self'",
        ]
        self.csp_directives = list(csp_directives or default_csp)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers.setdefault(
            "Content-Security-Policy", "; ".join(self.csp_directives)
        )

        # HSTS: only on HTTPS and non-dev hosts unless explicitly enabled
        if _is_secure_request(request) or self.enable_hsts_on_http:
            if request.url.hostname not in self.skip_hsts_hosts:
                response.headers.setdefault("Strict-Transport-Security", self.hsts)

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", self.frame_options)
        response.headers.setdefault("Referrer-Policy", self.referrer_policy)
        if self.xss_protection:
            response.headers.setdefault("X-XSS-Protection", self.xss_protection)
        response.headers.setdefault("X-Permitted-Cross-Domain-Policies", "none")

        return response
