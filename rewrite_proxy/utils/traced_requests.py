import logging
import time
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional

from opentelemetry.trace import Span, Status, StatusCode, Tracer

from rewrite_proxy.utils import mask_token

logger = logging.getLogger("uvicorn.error")


@contextmanager
def traced_request(
    tracer: Tracer,
    operation: str,
    session_value: Optional[str],
    start_message: str,
    extra_attrs: Optional[Mapping[str, object]] = None,
) -> Iterator[Span]:
    """
    Open a span for one proxied request and log its start and duration.

    The session id only ever reaches the span and the log masked. Exceptions escaping
    the block are recorded on the span before they propagate.
    """
    started = time.perf_counter()
    with tracer.start_as_current_span(
        operation, record_exception=False, set_status_on_exception=False
    ) as span:
        if session_value:
            span.set_attribute("session.id", mask_token(session_value, session_value))
        for key, value in (extra_attrs or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        logger.info(mask_token(start_message, session_value))
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            raise
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(f"[Trace] {operation} finished in {elapsed_ms:.1f} ms")
