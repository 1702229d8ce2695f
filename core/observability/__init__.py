"""
Observability Module for the Dashboard Data Kernel

Provides:
- Structured logging with correlation IDs
- Query metrics (started/completed/failed/fallbacks, load times)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_query_started,
    record_query_completed,
    record_query_failed,
    record_query_fallback,
    record_query_discarded,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_query_started",
    "record_query_completed",
    "record_query_failed",
    "record_query_fallback",
    "record_query_discarded",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
