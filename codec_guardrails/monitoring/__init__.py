"""
Monitoring for guardrail processes.

Components:
    MetricSample     - One observation compared against a guardrail threshold
    StructuredLogger - Event-based progress/verdict logging

Example:
    from codec_guardrails.monitoring import MetricSample, get_logger

    logger = get_logger()
    sample = MetricSample("rss_delta_mb", 1.2, unit="MB")
    logger.info("rss_sample", f"+{sample.value:.2f} MB")
"""

from codec_guardrails.monitoring.logging import (
    LogEvent,
    LogLevel,
    StructuredLogger,
    configure_logging,
    get_logger,
)
from codec_guardrails.monitoring.metrics import (
    BYTES_PER_MB,
    MetricSample,
    collect_garbage,
    last,
    peak,
    resident_memory_bytes,
    select,
)

__all__ = [
    # Logging
    "LogEvent",
    "LogLevel",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    # Metrics
    "BYTES_PER_MB",
    "MetricSample",
    "collect_garbage",
    "last",
    "peak",
    "resident_memory_bytes",
    "select",
]
