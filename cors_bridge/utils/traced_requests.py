import logging
from contextlib import contextmanager
from typing import Dict, Optional

from opentelemetry.trace import Tracer

from cors_bridge.proxy.target import EmbeddedTarget

logger = logging.getLogger("uvicorn.error")


@contextmanager
def traced_proxy(
    tracer: Tracer,
    operation: str,
    target: EmbeddedTarget,
    start_message: str,
    extra_attrs: Optional[Dict] = None,
):
    """Context manager to create a span, set target attributes, and log a start message."""
    with tracer.start_as_current_span(operation) as span:
        span.set_attribute("proxy.target_origin", target.origin)
        span.set_attribute("proxy.target_path", target.path)
        if extra_attrs:
            for k, v in extra_attrs.items():
                span.set_attribute(k, v)
        logger.info(start_message)
        yield span
