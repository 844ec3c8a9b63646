"""
Metric samples and process measurements used by the guardrails.
"""

from __future__ import annotations

import gc
import time
from dataclasses import dataclass, field
from typing import Iterable

import psutil

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class MetricSample:
    """A single numeric observation taken inside one guardrail process.

    Attributes:
        name: Metric identifier (e.g., "rss_delta_mb", "tick_lag_ms").
        value: Observed value.
        unit: Unit label for reporting.
        timestamp: time.perf_counter() at observation.
        labels: Extra dimensions (phase, frame index, vector name).
    """

    name: str
    value: float
    unit: str = ""
    timestamp: float = field(default_factory=time.perf_counter)
    labels: dict[str, str] = field(default_factory=dict)


def select(samples: Iterable[MetricSample], name: str, **labels: str) -> list[MetricSample]:
    """Samples with the given name whose labels include `labels`."""
    return [
        s for s in samples
        if s.name == name and all(s.labels.get(k) == v for k, v in labels.items())
    ]


def peak(samples: Iterable[MetricSample], name: str, **labels: str) -> float:
    """Largest value of a metric, or 0.0 when there are no samples."""
    return max((s.value for s in select(samples, name, **labels)), default=0.0)


def last(samples: Iterable[MetricSample], name: str, **labels: str) -> MetricSample | None:
    """Most recent sample of a metric."""
    matching = select(samples, name, **labels)
    return matching[-1] if matching else None


def resident_memory_bytes() -> int:
    """Resident set size of the current process."""
    return psutil.Process().memory_info().rss


def collect_garbage() -> int:
    """Run a full collection across all generations."""
    return gc.collect()
