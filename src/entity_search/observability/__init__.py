"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from entity_search.observability.context import get_trace_context, set_trace_context, trace_context
from entity_search.observability.logging import JsonFormatter, configure_logging
from entity_search.observability.metrics import (
    HOOK_RESOLUTION_FAILURES,
    INDEX_WRITES,
    SEARCH_COUNT,
    SEARCH_LATENCY,
    get_metrics,
    init_metrics,
    track_latency,
)
from entity_search.observability.tracing import create_span, get_tracer, init_tracing, set_tracer


__all__ = [
    "HOOK_RESOLUTION_FAILURES",
    "INDEX_WRITES",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "set_tracer",
    "trace_context",
    "track_latency",
]
