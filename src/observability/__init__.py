"""
Observability Package

OpenTelemetry tracing for fork execution.
"""

from src.observability.tracing import (
    get_current_span_id,
    get_current_trace_id,
    get_tracer,
    setup_tracing,
)

__all__ = [
    "setup_tracing",
    "get_tracer",
    "get_current_trace_id",
    "get_current_span_id",
]
