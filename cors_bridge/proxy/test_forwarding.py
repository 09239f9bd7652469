"""
Tests for the httpx-based HTTP forwarder and body streaming.
"""

import httpx
import pytest
from unittest.mock import Mock

from cors_bridge.proxy.errors import UpstreamTransportError
from cors_bridge.proxy.forwarding import HttpForwarder, stream_body
from cors_bridge.proxy.target import EmbeddedTarget

TARGET = EmbeddedTarget("https://api.example.com", "/data?x=1")


class TestHttpForwarder:
    @pytest.mark.asyncio
    async def test_request_relayed(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["headers"] = request.headers
            captured["body"] = request.content
            return httpx.Response(
                201,
                headers={"content-type": "application/json"},
                stream=httpx.ByteStream(b'{"id": 1}'),
            )

        forwarder = HttpForwarder(timeout=5, transport=httpx.MockTransport(handler))
        try:
            response = await forwarder.send(
                "POST",
                TARGET.url,
                headers=[("content-type", "application/json"), ("x-tag", "a")],
                content=b'{"name": "test"}',
            )
            body = await response.aread()
        finally:
            await forwarder.aclose()

        assert response.status_code == 201
        assert body == b'{"id": 1}'
        assert captured["method"] == "POST"
        assert captured["url"] == "https://api.example.com/data?x=1"
        assert captured["headers"]["host"] == "api.example.com"
        assert captured["headers"]["x-tag"] == "a"
        assert captured["body"] == b'{"name": "test"}'

    @pytest.mark.asyncio
    async def test_redirects_not_followed(self):
        def handler(request):
            return httpx.Response(302, headers={"location": "https://elsewhere/"})

        forwarder = HttpForwarder(timeout=5, transport=httpx.MockTransport(handler))
        try:
            response = await forwarder.send("GET", TARGET.url, headers=[])
            await response.aclose()
        finally:
            await forwarder.aclose()

        assert response.status_code == 302
        assert response.headers["location"] == "https://elsewhere/"

    @pytest.mark.asyncio
    async def test_connect_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        forwarder = HttpForwarder(timeout=5, transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(UpstreamTransportError) as exc_info:
                await forwarder.send("GET", TARGET.url, headers=[])
        finally:
            await forwarder.aclose()

        assert "Connection refused" in str(exc_info.value)
        assert exc_info.value.timeout is False

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self):
        def handler(request):
            raise httpx.ReadTimeout("Request timed out", request=request)

        forwarder = HttpForwarder(timeout=5, transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(UpstreamTransportError) as exc_info:
                await forwarder.send("GET", TARGET.url, headers=[])
        finally:
            await forwarder.aclose()

        assert exc_info.value.timeout is True


def _mock_response(chunks, error=None):
    response = Mock(spec=httpx.Response)

    async def aiter_raw():
        for chunk in chunks:
            yield chunk
        if error is not None:
            raise error

    response.aiter_raw = aiter_raw
    return response


class TestStreamBody:
    @pytest.mark.asyncio
    async def test_chunks_passed_through_in_order(self):
        response = _mock_response([b"chunk1", b"chunk2", b"chunk3"])
        result = [chunk async for chunk in stream_body(response, TARGET)]
        assert result == [b"chunk1", b"chunk2", b"chunk3"]

    @pytest.mark.asyncio
    async def test_transform_applied_per_chunk(self):
        seen_targets = []

        def transform(chunk, target):
            seen_targets.append(target)
            return chunk.upper()

        response = _mock_response([b"ab", b"cd"])
        result = [
            chunk async for chunk in stream_body(response, TARGET, transform=transform)
        ]
        assert result == [b"AB", b"CD"]
        assert seen_targets == [TARGET, TARGET]

    @pytest.mark.asyncio
    async def test_interrupted_body_ends_stream(self, caplog):
        response = _mock_response([b"partial"], error=httpx.ReadError("reset"))
        with caplog.at_level("ERROR", logger="uvicorn.error"):
            result = [chunk async for chunk in stream_body(response, TARGET)]
        assert result == [b"partial"]
        assert "interrupted" in caplog.text
