"""
Observability Module for the Back-Office Service

Provides:
- Structured logging with correlation IDs
- Metrics collection (backend requests, batch outcomes, processing times)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_request,
    record_batch_started,
    record_batch_outcome,
    record_processing_time,
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
    "record_request",
    "record_batch_started",
    "record_batch_outcome",
    "record_processing_time",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
