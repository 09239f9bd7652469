"""
WebSocket bridge between a browser client and its embedded upstream target.

Each upgraded connection gets one ``WebSocketBridge``. It resolves the target,
accepts the client, opens the upstream leg and then runs one pump per
direction. Whichever pump stops first ends the session: the other pump is
cancelled and each socket that is still open is closed exactly once.
"""

import asyncio
import logging
import ssl
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from fastapi import WebSocket, WebSocketDisconnect, status
from opentelemetry import trace
from starlette.datastructures import Headers
from starlette.websockets import WebSocketState
from websockets.asyncio.client import connect as websockets_connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException
from websockets.protocol import State

from cors_bridge.config import ProxyConfig
from cors_bridge.proxy.errors import (
    InvalidTargetError,
    UnexpectedHandshakeResponseError,
    UpstreamTransportError,
)
from cors_bridge.proxy.packets import (
    packet_header,
    rewrite_client_frame,
    rewrite_server_frame,
)
from cors_bridge.proxy.target import EmbeddedTarget, resolve_target
from cors_bridge.utils import cookie_fingerprint
from cors_bridge.utils.exception_logging import log_exception_with_details
from cors_bridge.utils.traced_requests import traced_proxy

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

# Only these upgrade request headers reach the upstream
FORWARDED_UPGRADE_HEADERS = ("cookie",)

Connector = Callable[..., Awaitable[Any]]


class BridgeState(str, Enum):
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    REJECTED = "rejected"


def forwarded_upgrade_headers(headers: Headers) -> List[Tuple[str, str]]:
    return [
        (name, headers[name]) for name in FORWARDED_UPGRADE_HEADERS if name in headers
    ]


def insecure_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class WebSocketBridge:
    def __init__(
        self,
        client: WebSocket,
        raw_path: str,
        config: ProxyConfig,
        connect: Optional[Connector] = None,
    ):
        self.client = client
        self.raw_path = raw_path
        self.config = config
        self.connect = connect or websockets_connect
        self.state = BridgeState.RESOLVING
        self.target: Optional[EmbeddedTarget] = None
        self.upstream = None
        self._client_closed = False
        self._upstream_closed = False

    async def run(self) -> BridgeState:
        """Drive the pair from resolution to teardown and return the final state."""
        logger.info(f"[WS-Bridge] Upgrade request URL: {self.raw_path}")
        try:
            self.target = resolve_target(self.raw_path)
        except InvalidTargetError as e:
            logger.error(f"[WS-Bridge] {e}")
            self.state = BridgeState.REJECTED
            # Closing before accept refuses the handshake
            await self.client.close(code=status.WS_1008_POLICY_VIOLATION)
            return self.state

        self.state = BridgeState.CONNECTING
        await self.client.accept()
        logger.info("[WS-Bridge] Client WebSocket established")

        with traced_proxy(
            tracer,
            "websocket_bridge",
            self.target,
            f"[WS-Bridge] Connecting to: {self.target.websocket_url}",
        ) as span:
            try:
                await self._connect_and_relay(span)
            finally:
                await self._teardown()
        return self.state

    async def _connect_and_relay(self, span) -> None:
        try:
            self.upstream = await self._open_upstream()
        except UnexpectedHandshakeResponseError as e:
            logger.error(f"[WS-Bridge] {e}")
            logger.error(f"[WS-Bridge] Response body: {e.body_text}")
            span.set_attribute("proxy.status_code", e.status_code)
            return
        except UpstreamTransportError as e:
            logger.error(f"[WS-Bridge] Target error: {e}")
            span.set_attribute("proxy.error", str(e))
            return

        logger.info("[WS-Bridge] Connected to target server")
        self.state = BridgeState.OPEN
        await self._relay()

    async def _open_upstream(self):
        headers = forwarded_upgrade_headers(self.client.headers)
        if headers:
            logger.debug(
                f"[WS-Bridge] Forwarding cookie: {cookie_fingerprint(dict(headers)['cookie'])}"
            )
        options = {
            "additional_headers": headers,
            "max_size": None,
            "ping_interval": None,
        }
        if self.target.is_secure:
            options["ssl"] = insecure_ssl_context()
        try:
            return await self.connect(self.target.websocket_url, **options)
        except InvalidStatus as e:
            response = e.response
            raise UnexpectedHandshakeResponseError(
                response.status_code, response.body
            ) from e
        except (OSError, TimeoutError, WebSocketException) as e:
            raise UpstreamTransportError(str(e) or type(e).__name__) from e

    async def _relay(self) -> None:
        pumps = [
            asyncio.create_task(self._pump_client_to_upstream()),
            asyncio.create_task(self._pump_upstream_to_client()),
        ]
        try:
            done, pending = await asyncio.wait(
                pumps, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            self.state = BridgeState.CLOSING
            for task in pumps:
                task.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                log_exception_with_details(logger, "[WS-Bridge]", task.exception())

    async def _pump_client_to_upstream(self) -> None:
        while True:
            message = await self.client.receive()
            if message["type"] == "websocket.disconnect":
                self._client_closed = True
                logger.info("[WS-Bridge] Client closed")
                return

            if message.get("text") is not None:
                original = message["text"]
                frame = rewrite_client_frame(original)
                if frame != original:
                    logger.info(
                        f"[WS-Bridge] Client->Server namespace: "
                        f"{packet_header(original)} -> {packet_header(frame)}"
                    )
                logger.debug(f"[WS-Bridge] Client->Server: {frame}")
            elif message.get("bytes") is not None:
                frame = message["bytes"]
            else:
                continue

            if not self._upstream_open():
                continue
            try:
                await self.upstream.send(frame)
            except ConnectionClosed as e:
                self._upstream_closed = True
                logger.error(f"[WS-Bridge] Target error: {e}")
                return

    async def _pump_upstream_to_client(self) -> None:
        try:
            async for message in self.upstream:
                frame = rewrite_server_frame(message, self.target.origin)
                if frame != message:
                    logger.info(
                        f"[WS-Bridge] Server->Client namespace: "
                        f"{packet_header(message)} -> {packet_header(frame)}"
                    )
                logger.debug(f"[WS-Bridge] Server->Client: {frame!r}")

                if not self._client_open():
                    continue
                try:
                    if isinstance(frame, str):
                        await self.client.send_text(frame)
                    else:
                        await self.client.send_bytes(frame)
                except WebSocketDisconnect:
                    self._client_closed = True
                    logger.info("[WS-Bridge] Client closed")
                    return
        except ConnectionClosed as e:
            logger.error(f"[WS-Bridge] Target error: {e}")
        self._upstream_closed = True
        logger.info("[WS-Bridge] Target closed")

    def _client_open(self) -> bool:
        return (
            not self._client_closed
            and self.client.application_state == WebSocketState.CONNECTED
            and self.client.client_state == WebSocketState.CONNECTED
        )

    def _upstream_open(self) -> bool:
        return (
            not self._upstream_closed
            and self.upstream is not None
            and self.upstream.state is State.OPEN
        )

    async def _teardown(self) -> None:
        self.state = BridgeState.CLOSING
        await self._close_upstream()
        await self._close_client()
        self.state = BridgeState.CLOSED

    async def _close_upstream(self) -> None:
        if self._upstream_closed or self.upstream is None:
            return
        self._upstream_closed = True
        await self.upstream.close()

    async def _close_client(self) -> None:
        if self._client_closed:
            return
        self._client_closed = True
        if self.client.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self.client.close()
        except (RuntimeError, WebSocketDisconnect) as e:
            logger.debug(f"[WS-Bridge] Client already gone: {e}")
