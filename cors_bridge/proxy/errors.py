from typing import Optional


class ProxyError(Exception):
    """Base class for failures scoped to a single proxied request or socket pair."""


class InvalidTargetError(ProxyError, ValueError):
    """The request path does not embed a ``http(s)://host[:port]`` target."""

    def __init__(self, raw_path: str):
        self.raw_path = raw_path
        super().__init__(f"Invalid embedded target: {raw_path!r}")


class UpstreamTransportError(ProxyError):
    """The upstream could not be reached (refused, reset, TLS failure, timeout)."""

    def __init__(self, message: str, timeout: bool = False):
        self.timeout = timeout
        super().__init__(message)


class UnexpectedHandshakeResponseError(ProxyError):
    """The upstream answered a WebSocket upgrade with something other than 101."""

    def __init__(self, status_code: int, body: Optional[bytes] = None):
        self.status_code = status_code
        self.body = body or b""
        super().__init__(f"Unexpected response from target: {status_code}")

    @property
    def body_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")
