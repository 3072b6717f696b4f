"""
OpenTelemetry Tracing Module

Spans for fork execution. The orchestrator opens one ``fork`` span per
call and one ``fork.branch`` span per branch, tagged with the branch index,
so a trace shows exactly how branches overlapped.

Tracing is a no-op until setup_tracing() installs a TracerProvider; the
OpenTelemetry API falls back to non-recording spans.
"""

from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Tracer

# Global tracer provider reference
_tracer_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str = "fork-merge-engine",
    otlp_endpoint: Optional[str] = None,
) -> TracerProvider:
    """
    Configure OpenTelemetry TracerProvider.

    Args:
        service_name: Name of the service for resource identification
        otlp_endpoint: Optional OTLP exporter endpoint (e.g., http://localhost:4317)

    Returns:
        Configured TracerProvider
    """
    global _tracer_provider

    resource = Resource.create({SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
    else:
        exporter = ConsoleSpanExporter()

    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider

    return provider


def get_tracer(name: str = __name__) -> Tracer:
    """Get a named tracer instance."""
    return trace.get_tracer(name)


def get_current_trace_id() -> Optional[str]:
    """Get the current trace ID as hex string."""
    span = trace.get_current_span()
    span_context = span.get_span_context()

    if span_context.trace_id == 0:
        return None

    return format(span_context.trace_id, "032x")


def get_current_span_id() -> Optional[str]:
    """Get the current span ID as hex string."""
    span = trace.get_current_span()
    span_context = span.get_span_context()

    if span_context.span_id == 0:
        return None

    return format(span_context.span_id, "016x")
