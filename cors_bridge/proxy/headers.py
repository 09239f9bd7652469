"""
Header rewriting for proxied HTTP traffic.

Outbound requests lose the browser's ``Origin`` so the upstream does not
reject them as cross-origin. Responses get CORS headers forced to the
configured origin and, optionally, ``Set-Cookie`` values made usable on
plain-HTTP localhost.
"""

import re
from typing import Iterable, List, Tuple

from cors_bridge.config import ProxyConfig

HeaderList = List[Tuple[str, str]]

CORS_ALLOWED_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Dropped from outbound requests; httpx derives host and length from the target
OUTBOUND_DROPPED_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length", "origin"}

FORCED_CORS_HEADERS = (
    "access-control-allow-origin",
    "access-control-allow-credentials",
    "access-control-allow-methods",
)

_SECURE_ATTRIBUTE = re.compile(r";\s*Secure\s*(?=;|$)")


def prepare_request_headers(headers: Iterable[Tuple[str, str]]) -> HeaderList:
    """Copy client headers for the upstream request, keeping repeated names."""
    return [
        (name, value)
        for name, value in headers
        if name.lower() not in OUTBOUND_DROPPED_HEADERS
    ]


def cors_headers(config: ProxyConfig) -> HeaderList:
    return [
        ("access-control-allow-origin", config.allowed_origin),
        ("access-control-allow-credentials", "true"),
        ("access-control-allow-methods", CORS_ALLOWED_METHODS),
    ]


def rewrite_set_cookie(cookie: str, cookie_domain: str) -> str:
    """
    Point a cookie at localhost and drop its Secure flag.

    ``sid=abc; Domain=.example.com; Secure; Path=/`` with cookie domain
    ``.example.com`` becomes ``sid=abc; Domain=localhost; Path=/``.
    Cookies for other domains keep their domain attribute.
    """
    if cookie_domain:
        cookie = cookie.replace(f"Domain={cookie_domain}", "Domain=localhost", 1)
    return _SECURE_ATTRIBUTE.sub("", cookie)


def rewrite_response_headers(
    headers: Iterable[Tuple[str, str]], config: ProxyConfig
) -> HeaderList:
    """
    Rewrite upstream response headers before they reach the client.

    Hop-by-hop headers are dropped, CORS headers are replaced by the forced
    values and every ``Set-Cookie`` entry is rewritten when ``fix_cookies`` is
    on. Applying this twice gives the same result as applying it once.
    """
    rewritten: HeaderList = []
    for name, value in headers:
        name_lower = name.lower()
        if name_lower in HOP_BY_HOP_HEADERS or name_lower in FORCED_CORS_HEADERS:
            continue
        if name_lower == "set-cookie" and config.fix_cookies:
            value = rewrite_set_cookie(value, config.cookie_domain)
        rewritten.append((name_lower, value))
    rewritten.extend(cors_headers(config))
    return rewritten
