"""
Embedded-target resolution.

A proxied request carries its real destination inside the path:
``/https://api.example.com:8443/some/path?q=1``. The first segment up to the
next ``/`` is the target origin, the remainder is the path sent upstream.
"""

import re
from dataclasses import dataclass

from cors_bridge.proxy.errors import InvalidTargetError

EMBEDDED_TARGET_PATTERN = re.compile(r"(https?://[^/]+)(/.*)?")


@dataclass(frozen=True)
class EmbeddedTarget:
    origin: str
    path: str = "/"

    @property
    def url(self) -> str:
        return f"{self.origin}{self.path}"

    @property
    def is_secure(self) -> bool:
        return self.origin.startswith("https://")

    @property
    def websocket_url(self) -> str:
        """Same host and path with ``http`` mapped to ``ws`` and ``https`` to ``wss``."""
        scheme = "wss" if self.is_secure else "ws"
        host = self.origin.split("://", 1)[1]
        return f"{scheme}://{host}{self.path}"


def resolve_target(raw_path: str) -> EmbeddedTarget:
    """Split an incoming path into the embedded origin and upstream path.

    Raises:
        InvalidTargetError: if the path does not start with an absolute
            ``http``/``https`` URL.
    """
    candidate = raw_path[1:] if raw_path.startswith("/") else raw_path
    match = EMBEDDED_TARGET_PATTERN.fullmatch(candidate)
    if not match:
        raise InvalidTargetError(raw_path)
    origin, path = match.group(1), match.group(2) or ""
    # A query right after the host belongs to the root path
    if "?" in origin:
        origin, query = origin.split("?", 1)
        if origin.endswith("://"):
            raise InvalidTargetError(raw_path)
        path = f"/?{query}{path}"
    return EmbeddedTarget(origin=origin, path=path or "/")
