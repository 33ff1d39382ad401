"""
Distributed Tracing with OpenTelemetry.

One span per verification, with an event for every verifyReceipt call made
while it was open. FastAPI and SQLAlchemy spans come from the instrumentors.
"""

from enum import Enum
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode

from iap_verify.config import settings

TRACER_NAME = "iap_verify.verification"


def setup_tracing() -> None:
    """Install an OTLP-exporting tracer provider when tracing is enabled."""
    if not settings.tracing_enabled:
        return

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.service_name,
                "service.version": settings.api_version,
            }
        )
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
        )
    )
    trace.set_tracer_provider(provider)


def instrument_fastapi(app: Any) -> None:
    """Trace incoming HTTP requests. Call once, after app creation."""
    if settings.tracing_enabled:
        FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: Any) -> None:
    """Trace audit log queries on an async engine."""
    if settings.tracing_enabled:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def _span_value(value: Any) -> str | int | float | bool:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def add_span_attributes(span: Span, **attributes: Any) -> None:
    """Set attributes on a span, skipping None values."""
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, _span_value(value))


def add_span_event(span: Span, name: str, **attributes: Any) -> None:
    """Record a point-in-time event (e.g. one vendor call) on a span."""
    span.add_event(
        name,
        attributes={key: _span_value(value) for key, value in attributes.items() if value is not None},
    )


def set_span_error(span: Span, error: BaseException) -> None:
    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)


class trace_operation:
    """
    Context manager for a traced operation.

    Exceptions leaving the block mark the span as failed and propagate.

    Usage:
        with trace_operation("apple_receipt_verification", bundle_id=bundle_id) as span:
            ...
            span.set_attribute("is_valid", True)
    """

    def __init__(self, operation_name: str, **attributes: Any) -> None:
        self.operation_name = operation_name
        self.attributes = attributes
        self._span_cm: Any = None

    def __enter__(self) -> Span:
        self._span_cm = trace.get_tracer(TRACER_NAME).start_as_current_span(
            self.operation_name, record_exception=False, set_status_on_exception=False
        )
        span: Span = self._span_cm.__enter__()
        add_span_attributes(span, **self.attributes)
        return span

    def __exit__(self, exc_type: Any, exc_val: BaseException | None, exc_tb: Any) -> None:
        if exc_val is not None:
            set_span_error(trace.get_current_span(), exc_val)
        self._span_cm.__exit__(exc_type, exc_val, exc_tb)
