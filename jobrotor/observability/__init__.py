"""
Logging, metrics and tracing for workers and the reaper.
"""

from jobrotor.observability.logging import bind_context, clear_context, setup_logging
from jobrotor.observability.metrics import MetricsCollector, get_metrics, setup_metrics
from jobrotor.observability.tracing import get_tracer, setup_tracing, start_span

__all__ = [
    "setup_logging",
    "bind_context",
    "clear_context",
    "MetricsCollector",
    "setup_metrics",
    "get_metrics",
    "setup_tracing",
    "get_tracer",
    "start_span",
]
