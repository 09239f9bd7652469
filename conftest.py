# Ensure tests import the package from this checkout even when it is not installed.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from cors_bridge.config import ProxyConfig  # noqa: E402


@pytest.fixture
def proxy_config():
    """Config matching the documented cookie example."""
    return ProxyConfig(
        host="127.0.0.1",
        port=8080,
        allowed_origin="http://localhost:3000",
        fix_cookies=True,
        cookie_domain=".example.com",
        timeout=5.0,
    )
