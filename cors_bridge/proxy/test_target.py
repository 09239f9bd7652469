"""
Tests for embedded-target resolution.
"""

import pytest

from cors_bridge.proxy.errors import InvalidTargetError
from cors_bridge.proxy.target import EmbeddedTarget, resolve_target


class TestResolveTarget:
    @pytest.mark.parametrize(
        "embedded",
        [
            "http://localhost:5000/api/items",
            "https://api.example.com/v1/users/123",
            "https://api.example.com:8443/socket.io/?EIO=4&transport=websocket",
            "http://10.0.0.5/",
            "https://api.example.com/search?q=a/b",
        ],
    )
    def test_origin_and_path_reassemble_input(self, embedded):
        target = resolve_target("/" + embedded)
        assert target.origin + target.path == embedded
        assert target.path.startswith("/")

    def test_origin_without_path_defaults_to_root(self):
        target = resolve_target("/https://api.example.com")
        assert target == EmbeddedTarget(origin="https://api.example.com", path="/")

    def test_port_kept_in_origin(self):
        target = resolve_target("/http://localhost:3001/data")
        assert target.origin == "http://localhost:3001"
        assert target.path == "/data"

    def test_leading_slash_is_optional(self):
        assert resolve_target("https://api.example.com/x") == resolve_target(
            "/https://api.example.com/x"
        )

    @pytest.mark.parametrize(
        "raw_path",
        [
            "",
            "/",
            "/not-a-url",
            "/relative/path",
            "/ftp://files.example.com/readme",
            "/https:/api.example.com",
            "/https:///path-without-host",
            "//https://api.example.com/double-slash",
        ],
    )
    def test_invalid_paths_rejected(self, raw_path):
        with pytest.raises(InvalidTargetError) as exc_info:
            resolve_target(raw_path)
        assert exc_info.value.raw_path == raw_path

    def test_query_without_path_goes_to_root(self):
        target = resolve_target("/https://api.example.com?x=1")
        assert target == EmbeddedTarget("https://api.example.com", "/?x=1")
        assert target.url == "https://api.example.com/?x=1"

    def test_query_without_path_keeps_slashes_in_query(self):
        target = resolve_target("/http://localhost:5000?next=/a/b")
        assert target.origin == "http://localhost:5000"
        assert target.path == "/?next=/a/b"

    def test_query_without_host_rejected(self):
        with pytest.raises(InvalidTargetError):
            resolve_target("/https://?x=1")

    def test_invalid_target_is_value_error(self):
        with pytest.raises(ValueError):
            resolve_target("/not-a-url")


class TestEmbeddedTarget:
    def test_url(self):
        target = EmbeddedTarget("https://api.example.com", "/a?b=1")
        assert target.url == "https://api.example.com/a?b=1"

    def test_websocket_url_for_https(self):
        target = EmbeddedTarget(
            "https://api.example.com:8443", "/socket.io/?EIO=4&transport=websocket"
        )
        assert target.is_secure
        assert (
            target.websocket_url
            == "wss://api.example.com:8443/socket.io/?EIO=4&transport=websocket"
        )

    def test_websocket_url_for_http(self):
        target = EmbeddedTarget("http://localhost:5000")
        assert not target.is_secure
        assert target.websocket_url == "ws://localhost:5000/"

    def test_target_is_immutable(self):
        target = EmbeddedTarget("http://localhost:5000")
        with pytest.raises(AttributeError):
            target.origin = "http://elsewhere"
