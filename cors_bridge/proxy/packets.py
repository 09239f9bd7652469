"""
Socket.IO connect-packet rewriting for the WebSocket bridge.

Browser clients connect to the namespace ``/<target-origin>`` because the
target is embedded in the proxy URL. Upstream servers only know the default
namespace, so the origin is dropped on the way out and put back on the way in.
Every frame is handled on its own; nothing is buffered between frames.
"""

import re
from typing import Union

Frame = Union[str, bytes]

# Engine.IO type code, namespace that is itself an origin, optional payload
CLIENT_CONNECT_PATTERN = re.compile(r"(4\d)(/https?://[^,]+)(,.*)?")
# Engine.IO type code, default namespace, optional payload
SERVER_CONNECT_PATTERN = re.compile(r"(4\d)(/)(,.*)?")


def rewrite_client_frame(frame: Frame) -> Frame:
    """Client -> server: ``40/https://host,{..}`` becomes ``40/,{..}``."""
    if not isinstance(frame, str):
        return frame
    match = CLIENT_CONNECT_PATTERN.fullmatch(frame)
    if not match:
        return frame
    return f"{match.group(1)}/{match.group(3) or ''}"


def rewrite_server_frame(frame: Frame, origin: str) -> Frame:
    """Server -> client: ``40/,{..}`` becomes ``40/<origin>,{..}``."""
    if not isinstance(frame, str):
        return frame
    match = SERVER_CONNECT_PATTERN.fullmatch(frame)
    if not match:
        return frame
    return f"{match.group(1)}/{origin}{match.group(3) or ''}"


def packet_header(frame: str) -> str:
    """Type code and namespace of a connect-class packet, without its payload."""
    return frame.split(",", 1)[0]
