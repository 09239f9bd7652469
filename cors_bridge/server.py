import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from cors_bridge.config import ProxyConfig
from cors_bridge.proxy.bridge import Connector
from cors_bridge.proxy.forwarding import HttpForwarder
from cors_bridge.routes import router
from cors_bridge.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")

# Per-chunk and per-frame ASGI events of long streams and bridged sockets
NOISY_ASGI_EVENTS = {
    "http.response.body",
    "websocket.send",
    "websocket.receive",
}


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that drops ASGI body and frame spans.
    A streamed download or a long-lived socket would otherwise produce one
    span per chunk or frame.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") in NOISY_ASGI_EVENTS
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing(app: FastAPI) -> None:
    """Export spans over OTLP when an endpoint is configured."""
    if not OTLP_ENDPOINT:
        return
    tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": SERVICE_NAME})
    )
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=(OTLP_HEADERS.split(",") if OTLP_HEADERS else None),
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )
    trace.set_tracer_provider(tracer_provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)


def create_app(
    config: Optional[ProxyConfig] = None,
    forwarder: Optional[HttpForwarder] = None,
    ws_connect: Optional[Connector] = None,
) -> FastAPI:
    config = config or ProxyConfig.from_env()
    forwarder = forwarder or HttpForwarder(timeout=config.timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"[CORS-Proxy] Proxy server running on http://{config.host}:{config.port}"
        )
        logger.info(f"[CORS-Proxy] Usage: {config.usage_hint}")
        logger.info(
            f"[CORS-Proxy] Allowed origin {config.allowed_origin}, "
            f"fix cookies: {config.fix_cookies} ({config.cookie_domain})"
        )
        yield
        await forwarder.aclose()

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    app.state.config = config
    app.state.forwarder = forwarder
    app.state.ws_connect = ws_connect

    configure_tracing(app)
    app.include_router(router)
    return app


app = create_app()
