from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export import SpanExportResult

from cors_bridge.config import ProxyConfig
from cors_bridge.server import FilteringSpanExporter, create_app


def _span(event_type=None):
    attributes = {"asgi.event.type": event_type} if event_type else {}
    return SimpleNamespace(attributes=attributes)


class TestFilteringSpanExporter:
    @pytest.mark.parametrize(
        "event_type", ["http.response.body", "websocket.send", "websocket.receive"]
    )
    def test_noisy_spans_dropped(self, event_type):
        inner = Mock()
        inner.export.return_value = SpanExportResult.SUCCESS
        exporter = FilteringSpanExporter(inner)

        result = exporter.export([_span(event_type)])

        assert result == SpanExportResult.SUCCESS
        inner.export.assert_not_called()

    def test_other_spans_exported(self):
        inner = Mock()
        inner.export.return_value = SpanExportResult.SUCCESS
        exporter = FilteringSpanExporter(inner)
        keep = _span()

        exporter.export([keep, _span("http.response.body")])

        inner.export.assert_called_once_with([keep])

    def test_shutdown_and_flush_delegated(self):
        inner = Mock()
        exporter = FilteringSpanExporter(inner)

        exporter.shutdown()
        exporter.force_flush(1000)

        inner.shutdown.assert_called_once()
        inner.force_flush.assert_called_once_with(1000)


class TestCreateApp:
    def test_collaborators_stored_on_state(self, proxy_config):
        forwarder = Mock()
        connector = Mock()
        app = create_app(proxy_config, forwarder=forwarder, ws_connect=connector)

        assert app.state.config is proxy_config
        assert app.state.forwarder is forwarder
        assert app.state.ws_connect is connector

    def test_forwarder_closed_on_shutdown(self, proxy_config):
        class ClosingForwarder:
            closed = False

            async def aclose(self):
                self.closed = True

        forwarder = ClosingForwarder()
        app = create_app(proxy_config, forwarder=forwarder)

        with TestClient(app):
            assert forwarder.closed is False
        assert forwarder.closed is True

    def test_defaults_from_environment(self, monkeypatch):
        monkeypatch.setattr("cors_bridge.vars.ALLOWED_ORIGIN", "http://localhost:4200")
        app = create_app()
        assert app.state.config.allowed_origin == "http://localhost:4200"
        assert isinstance(app.state.config, ProxyConfig)
