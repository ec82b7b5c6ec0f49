"""Security façade for origin checks, rate limiting, and headers middleware."""

from clinic.middleware.security import SecurityHeadersMiddleware  # noqa: F401

from .origin import OriginGuard  # noqa: F401
from .rate_limit import (  # noqa: F401
    InMemoryRateWindowStore,
    RateLimiter,
    RateWindowStore,
    SqlRateWindowStore,
    limiter,
)
from .utils import UNKNOWN_CLIENT, client_identity, resolve_client_ip  # noqa: F401

__all__ = [
    "OriginGuard",
    "InMemoryRateWindowStore",
    "RateLimiter",
    "RateWindowStore",
    "SqlRateWindowStore",
    "limiter",
    "UNKNOWN_CLIENT",
    "client_identity",
    "resolve_client_ip",
    "SecurityHeadersMiddleware",
]
