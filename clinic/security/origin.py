"""Origin guard: accept only requests that plausibly come from our front-end."""

from __future__ import annotations

from collections.abc import Iterable

from clinic.errors import MethodNotAllowed, OriginRejected

ALLOWED_METHODS = ("POST", "OPTIONS")
CORS_ALLOW_HEADERS = ("Content-Type", "X-Requested-With")


class OriginGuard:
    """Allow-list check over the ``Origin`` and ``Referer`` headers.

    ``Origin`` must match an allowed scheme+host exactly; ``Referer`` only
    needs to contain one of the allowed domain substrings.
    """

    def __init__(
        self,
        allowed_origins: Iterable[str],
        allowed_referer_domains: Iterable[str],
    ) -> None:
        self.allowed_origins = frozenset(allowed_origins)
        self.allowed_referer_domains = tuple(allowed_referer_domains)

    def is_allowed_origin(self, origin: str | None) -> bool:
        return bool(origin) and origin in self.allowed_origins

    def is_allowed_referer(self, referer: str | None) -> bool:
        if not referer:
            return False
        return any(domain in referer for domain in self.allowed_referer_domains)

    def check_method(self, method: str) -> bool:
        """Return True for a CORS preflight, raise for anything but POST."""
        method = method.upper()
        if method == "OPTIONS":
            return True
        if method != "POST":
            raise MethodNotAllowed()
        return False

    def check(self, origin: str | None, referer: str | None) -> None:
        if self.is_allowed_referer(referer) or self.is_allowed_origin(origin):
            return
        raise OriginRejected()

    def cors_headers(self, origin: str | None) -> dict[str, str]:
        """CORS response headers, only for allow-listed origins."""
        if not self.is_allowed_origin(origin):
            return {}
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
            "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
            "Access-Control-Allow-Credentials": "true",
            "Vary": "Origin",
        }
