from __future__ import annotations

import ipaddress
from collections.abc import Mapping

from starlette.requests import Request

UNKNOWN_CLIENT = "unknown"

# Checked in order; the first public address wins.
FORWARDING_HEADERS = (
    "client-ip",
    "x-forwarded-for",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
)


def _parse_ip(candidate: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    value = candidate.strip().strip('"')
    # RFC 7239 "for=" tokens, e.g. Forwarded: for=203.0.113.7;proto=https
    for part in value.split(";"):
        part = part.strip()
        if part.lower().startswith("for="):
            value = part[4:].strip().strip('"')
            break
    if value.startswith("[") and "]" in value:
        value = value[1 : value.index("]")]
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


def is_public_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return not (
        ip.is_private
        or ip.is_reserved
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_unspecified
    )


def resolve_client_ip(headers: Mapping[str, str], remote_addr: str | None) -> str:
    """Derive the client identity used for rate limiting and audit records.

    Prefers the first public address in the forwarding headers, then the
    direct connection address, then ``"unknown"``.
    """
    lowered = {key.lower(): value for key, value in headers.items()}
    for header in FORWARDING_HEADERS:
        raw = lowered.get(header)
        if not raw:
            continue
        for candidate in raw.split(","):
            ip = _parse_ip(candidate)
            if ip is not None and is_public_ip(ip):
                return str(ip)

    if remote_addr:
        ip = _parse_ip(remote_addr)
        if ip is not None:
            return str(ip)
    return UNKNOWN_CLIENT


def client_identity(request: Request) -> str:
    """Key function shared by the burst limiter and the pipeline."""
    remote = request.client.host if request.client else None
    return resolve_client_ip(request.headers, remote)
