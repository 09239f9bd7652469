"""
Socket fakes for bridge tests.

``FakeClientWebSocket`` mimics Starlette's server-side WebSocket and
``FakeUpstream`` a websockets client connection.
"""

import asyncio

from starlette.datastructures import Headers
from starlette.websockets import WebSocketState
from websockets.protocol import State


class FakeClientWebSocket:
    """Minimal Starlette-like server-side WebSocket."""

    def __init__(self, messages=(), headers=None, hold_open=True):
        self.headers = Headers(headers=headers or {})
        self.application_state = WebSocketState.CONNECTING
        self.client_state = WebSocketState.CONNECTING
        self.accepted = False
        self.close_calls = []
        self.sent = []
        self._incoming = asyncio.Queue()
        for message in messages:
            self._incoming.put_nowait(message)
        if not hold_open:
            self.disconnect()

    def disconnect(self, code=1000):
        self._incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    async def accept(self):
        self.accepted = True
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

    async def receive(self):
        message = await self._incoming.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def send_text(self, data):
        self.sent.append(data)

    async def send_bytes(self, data):
        self.sent.append(data)

    async def close(self, code=1000):
        self.close_calls.append(code)
        self.application_state = WebSocketState.DISCONNECTED


class FakeUpstream:
    """Minimal websockets-like client connection."""

    def __init__(self, messages=(), hold_open=True, error=None, echo=None):
        self.state = State.OPEN
        self.sent = []
        self.close_calls = 0
        self.echo = echo or {}
        self._error = error
        self._incoming = asyncio.Queue()
        for message in messages:
            self._incoming.put_nowait(message)
        if not hold_open:
            self._incoming.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self._incoming.get()
        if message is None:
            self.state = State.CLOSED
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        return message

    async def send(self, message):
        self.sent.append(message)
        if message in self.echo:
            self._incoming.put_nowait(self.echo[message])

    async def close(self):
        self.close_calls += 1
        self.state = State.CLOSED
        self._incoming.put_nowait(None)


class FakeConnector:
    """Records connect calls; ``factory`` builds the upstream inside the running loop."""

    def __init__(self, upstream=None, error=None, factory=None):
        self.upstream = upstream
        self.error = error
        self.factory = factory
        self.calls = []

    async def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        if self.factory is not None:
            self.upstream = self.factory()
        return self.upstream
