"""
HTTP forwarding to the embedded target.

The forwarder only moves bytes: it sends one request to the resolved target
and hands back the streamed upstream response. Header policy lives in
``cors_bridge.proxy.headers``.
"""

import logging
from typing import AsyncIterator, Callable, Optional

import httpx

from cors_bridge.proxy.errors import UpstreamTransportError
from cors_bridge.proxy.headers import HeaderList
from cors_bridge.proxy.target import EmbeddedTarget

logger = logging.getLogger("uvicorn.error")

ChunkTransform = Callable[[bytes, EmbeddedTarget], bytes]


def passthrough_chunk(chunk: bytes, target: EmbeddedTarget) -> bytes:
    return chunk


class HttpForwarder:
    """Relays requests to upstream origins over a shared httpx client."""

    def __init__(
        self,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        # Development-only trust model: upstream certificates are not verified.
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            verify=False,
            transport=transport,
        )

    async def send(
        self,
        method: str,
        url: str,
        headers: HeaderList,
        content: bytes = b"",
    ) -> httpx.Response:
        """Send one request upstream and return the response unread.

        Raises:
            UpstreamTransportError: if the upstream cannot be reached or
                the exchange fails before response headers arrive.
        """
        request = self.client.build_request(
            method, url, headers=headers, content=content
        )
        try:
            return await self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamTransportError(str(e) or "Gateway timeout", timeout=True) from e
        except httpx.HTTPError as e:
            raise UpstreamTransportError(str(e) or type(e).__name__) from e

    async def aclose(self) -> None:
        await self.client.aclose()


async def stream_body(
    response: httpx.Response,
    target: EmbeddedTarget,
    transform: ChunkTransform = passthrough_chunk,
) -> AsyncIterator[bytes]:
    """
    Stream the raw upstream body, passing every chunk through ``transform``.

    Errors after the response has started cannot be reported to the client
    anymore, so they end the stream and are logged.
    """
    try:
        async for chunk in response.aiter_raw():
            yield transform(chunk, target)
    except httpx.HTTPError as e:
        logger.error(f"[CORS-Proxy] Upstream body from {target.url} interrupted: {e}")
