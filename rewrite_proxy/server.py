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
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from rewrite_proxy.vars import (
    MAX_REDIRECTS,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    PROXY_ROUTE,
    SERVICE_NAME,
    SESSION_MANAGER,
)
from .routes import router

# ASGI send events that produce one span per chunk of a proxied body
NOISY_ASGI_EVENTS = frozenset({"http.response.body"})


class FilteringSpanExporter(SpanExporter):
    """
    Drops the per-chunk ASGI spans before they reach ``exporter``. Large binary
    pass-through responses would otherwise bury the proxy spans.
    """

    def __init__(self, exporter: SpanExporter, noisy_events=NOISY_ASGI_EVENTS):
        self.exporter = exporter
        self.noisy_events = noisy_events

    def _is_noise(self, span: ReadableSpan) -> bool:
        attributes = span.attributes or {}
        return attributes.get("asgi.event.type") in self.noisy_events

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if not self._is_noise(span)]
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def parse_otlp_headers(raw: str) -> Optional[dict[str, str]]:
    """``k1=v1,k2=v2`` as used by ``OTEL_EXPORTER_OTLP_HEADERS``; None when empty."""
    headers = {}
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers or None


def configure_tracing(app: FastAPI) -> TracerProvider:
    provider = TracerProvider(
        resource=Resource.create({"service.name": SERVICE_NAME})
    )
    if OTLP_ENDPOINT:
        exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT, headers=parse_otlp_headers(OTLP_HEADERS)
        )
        provider.add_span_processor(BatchSpanProcessor(FilteringSpanExporter(exporter)))
    trace.set_tracer_provider(provider)

    # Probes and scrapes would dominate the traces
    FastAPIInstrumentor.instrument_app(
        app, tracer_provider=provider, excluded_urls="health,metrics"
    )
    return provider


app = FastAPI(title=SERVICE_NAME)
Instrumentator().instrument(app).expose(app)
configure_tracing(app)

app_info = Info("fastapi_app_info", "Application Info")
app_info.info(
    {
        "app_name": SERVICE_NAME,
        "proxy_route": PROXY_ROUTE,
        "max_redirects": str(MAX_REDIRECTS),
        "session_manager": SESSION_MANAGER,
    }
)

app.include_router(router)
