import logging

from fastapi import APIRouter, Request, WebSocket
from fastapi.responses import JSONResponse, Response, StreamingResponse
from opentelemetry import trace
from starlette.background import BackgroundTask
from starlette.requests import HTTPConnection

from cors_bridge.config import ProxyConfig
from cors_bridge.proxy.bridge import WebSocketBridge
from cors_bridge.proxy.errors import InvalidTargetError, UpstreamTransportError
from cors_bridge.proxy.forwarding import HttpForwarder, stream_body
from cors_bridge.proxy.headers import (
    cors_headers,
    prepare_request_headers,
    rewrite_response_headers,
)
from cors_bridge.proxy.target import EmbeddedTarget, resolve_target
from cors_bridge.utils.exception_logging import format_exception_message
from cors_bridge.utils.traced_requests import traced_proxy

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def embedded_path(connection: HTTPConnection) -> str:
    """The literal request path plus query string, as seen by the proxy.

    ``raw_path`` keeps percent-escapes such as ``%2F`` intact; ``path`` is
    already decoded and only used when the server does not provide it.
    """
    raw_path = connection.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else connection.scope["path"]
    query = connection.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def error_response(status_code: int, message: str, config: ProxyConfig) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers=dict(cors_headers(config)),
    )


async def forward_to_target(
    request: Request,
    target: EmbeddedTarget,
    config: ProxyConfig,
    forwarder: HttpForwarder,
) -> Response:
    """
    Forward one request to its embedded target and relay the response.

    Outbound headers lose ``Origin``; response headers get the forced CORS
    values and cookie rewriting. Transport failures become a JSON error.
    """
    with traced_proxy(
        tracer,
        "proxy_request",
        target,
        f"[CORS-Proxy] {request.method} {target.url}",
        {"proxy.method": request.method},
    ) as span:
        headers = prepare_request_headers(request.headers.items())
        body = await request.body()

        try:
            upstream = await forwarder.send(
                request.method, target.url, headers=headers, content=body
            )
        except UpstreamTransportError as e:
            message = format_exception_message(e)
            logger.error(f"[CORS-Proxy] Proxy error for {target.url}: {message}")
            span.set_attribute("proxy.error", "timeout" if e.timeout else message)
            return error_response(
                504 if e.timeout else 502, f"Proxy error: {message}", config
            )

        span.set_attribute("proxy.status_code", upstream.status_code)
        response = StreamingResponse(
            stream_body(upstream, target),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        # Set-Cookie may repeat, so the raw header list is built directly
        upstream_headers = [
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in upstream.headers.raw
        ]
        response.raw_headers = [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in rewrite_response_headers(upstream_headers, config)
        ]
        return response


# Register catch-all route for proxying
@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_all(request: Request, path: str):
    """Catch-all route that proxies requests to the target embedded in the path."""
    config: ProxyConfig = request.app.state.config
    try:
        target = resolve_target(embedded_path(request))
    except InvalidTargetError as e:
        logger.warning(f"[CORS-Proxy] {e}")
        return error_response(
            400, f"Invalid URL format. Use: {config.usage_hint}", config
        )
    return await forward_to_target(request, target, config, request.app.state.forwarder)


@router.websocket("/{path:path}")
async def proxy_websocket(websocket: WebSocket, path: str):
    """Bridge an upgraded connection to the WebSocket endpoint embedded in the path."""
    bridge = WebSocketBridge(
        websocket,
        embedded_path(websocket),
        websocket.app.state.config,
        connect=websocket.app.state.ws_connect,
    )
    await bridge.run()
