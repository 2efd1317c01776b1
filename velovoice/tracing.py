"""
OpenTelemetry spans for transcript round-trips and LLM calls.
"""
from contextlib import contextmanager
from typing import Iterator, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode
import structlog

from . import __version__
from .config import settings

logger = structlog.get_logger(__name__)

_tracer: Optional[trace.Tracer] = None


def init_tracing(service_name: str = "velovoice") -> trace.Tracer:
    """Install the OTLP exporter when OTEL_ENABLED is set; otherwise spans are no-ops."""
    global _tracer
    if _tracer is not None:
        return _tracer

    if settings.otel_enabled:
        provider = TracerProvider(resource=Resource.create({
            "service.name": service_name,
            "service.version": __version__,
        }))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint)))
        trace.set_tracer_provider(provider)
        # LLM requests go through httpx
        HTTPXClientInstrumentor().instrument()
        logger.info("tracing_initialized", endpoint=settings.otel_endpoint)
    else:
        logger.info("tracing_disabled", reason="OTEL_ENABLED=false")

    _tracer = trace.get_tracer("velovoice")
    return _tracer


@contextmanager
def _span(name: str, **attributes) -> Iterator[trace.Span]:
    tracer = _tracer or init_tracing()
    with tracer.start_as_current_span(name, record_exception=True, set_status_on_exception=False) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
        span.set_status(Status(StatusCode.OK))


def start_transcript_span(client_id: str, persona: str, language: str):
    """Span covering one transcript: prompt, LLM call and reply."""
    return _span("copilot.transcript", client_id=client_id, persona=persona, language=language)


def start_llm_span(backend: str, model: str, tools_count: int = 0):
    """Span around a single LLM generation request."""
    return _span("llm.generate", backend=backend, model=model, tools_count=tools_count)
