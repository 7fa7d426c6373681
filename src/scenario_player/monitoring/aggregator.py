# src/scenario_player/monitoring/aggregator.py
"""Latency aggregation and statistics calculation."""

from __future__ import annotations

import threading
import numpy as np
from typing import Dict, List
from collections import defaultdict, deque
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass
class AggregatedStats:
    """Container for aggregated statistics."""
    count: int
    mean: float
    std: float
    min: float
    max: float
    p50: float
    p90: float
    p95: float
    p99: float

    @classmethod
    def empty(cls) -> AggregatedStats:
        return cls(count=0, mean=0.0, std=0.0, min=0.0, max=0.0,
                   p50=0.0, p90=0.0, p95=0.0, p99=0.0)

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "count": self.count,
            "mean": self.mean,
            "std": self.std,
            "min": self.min,
            "max": self.max,
            "p50": self.p50,
            "p90": self.p90,
            "p95": self.p95,
            "p99": self.p99,
        }


def calculate_stats(values: List[float]) -> AggregatedStats:
    """Calculate aggregated statistics for a list of values."""
    if not values:
        return AggregatedStats.empty()

    sorted_values = np.sort(values)

    return AggregatedStats(
        count=len(values),
        mean=float(np.mean(sorted_values)),
        std=float(np.std(sorted_values)),
        min=float(sorted_values[0]),
        max=float(sorted_values[-1]),
        p50=float(np.percentile(sorted_values, 50)),
        p90=float(np.percentile(sorted_values, 90)),
        p95=float(np.percentile(sorted_values, 95)),
        p99=float(np.percentile(sorted_values, 99)),
    )


class LatencyAggregator:
    """Collects latency samples per operation and summarizes them.

    Safe to feed from concurrently running scenarios.
    """

    def __init__(self, window_size: int = 10000):
        """
        Initialize aggregator.

        Args:
            window_size: Size of sliding window for latency samples
        """
        self.window_size = window_size
        self._lock = threading.Lock()
        self.latency_windows: Dict[str, deque] = defaultdict(
            lambda: deque(maxlen=window_size)
        )
        self.operation_counts: Dict[str, int] = defaultdict(int)
        self.error_counts: Dict[str, int] = defaultdict(int)

    def add_sample(self, operation: str, latency_ms: float, failed: bool = False) -> None:
        """Add a latency sample for an operation."""
        with self._lock:
            self.latency_windows[operation].append(latency_ms)
            self.operation_counts[operation] += 1
            if failed:
                self.error_counts[operation] += 1

    def operations(self) -> List[str]:
        with self._lock:
            return sorted(self.operation_counts)

    def get_operation_stats(self, operation: str) -> AggregatedStats:
        """Get statistics for a single operation."""
        with self._lock:
            samples = list(self.latency_windows.get(operation, []))
        return calculate_stats(samples)

    def summary(self) -> Dict[str, Dict[str, float]]:
        """Statistics of every operation, including its error count."""
        summary = {}
        for operation in self.operations():
            stats = self.get_operation_stats(operation).to_dict()
            with self._lock:
                stats["errors"] = self.error_counts.get(operation, 0)
            summary[operation] = stats
        return summary

    def reset(self) -> None:
        """Drop all samples."""
        with self._lock:
            self.latency_windows.clear()
            self.operation_counts.clear()
            self.error_counts.clear()
