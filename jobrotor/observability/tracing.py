"""
OpenTelemetry tracing.

Workers export spans over OTLP once setup_tracing() has run. Before that,
spans go to whatever provider is registered globally (a no-op one by
default), so the scheduler can be used as a library without exporters.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Tracer

from jobrotor import __version__
from jobrotor.config import Settings, get_settings

_tracer: Tracer | None = None


def setup_tracing(settings: Settings | None = None, console: bool = False) -> Tracer:
    """
    Register an exporting tracer provider for this process.

    Args:
        settings: Application settings. Defaults to the environment.
        console: Also print finished spans to stdout.

    Returns:
        The tracer used for worker spans.
    """
    global _tracer

    settings = settings or get_settings()

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
                "jobrotor.worker_id": settings.worker_id or "",
            }
        )
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
        )
    )
    if console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(settings.otel_service_name)
    return _tracer


def instrument_sqlalchemy(engine: Any) -> None:
    """Trace every statement the engine runs. Safe to call more than once."""
    instrumentor = SQLAlchemyInstrumentor()
    if not instrumentor.is_instrumented_by_opentelemetry:
        instrumentor.instrument(engine=engine)


def get_tracer() -> Tracer:
    if _tracer is None:
        return trace.get_tracer(__name__)
    return _tracer


@contextmanager
def start_span(name: str, **attributes: str | int) -> Iterator[Span]:
    """
    Run a block inside a span carrying the given attributes.

    Exceptions are recorded on the span and propagate unchanged.
    """
    with get_tracer().start_as_current_span(name) as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)
        yield span
