from .errors import (
    InvalidTargetError,
    ProxyError,
    UnexpectedHandshakeResponseError,
    UpstreamTransportError,
)
from .packets import rewrite_client_frame, rewrite_server_frame
from .target import EmbeddedTarget, resolve_target

__all__ = [
    "EmbeddedTarget",
    "InvalidTargetError",
    "ProxyError",
    "UnexpectedHandshakeResponseError",
    "UpstreamTransportError",
    "resolve_target",
    "rewrite_client_frame",
    "rewrite_server_frame",
]
