"""Monitoring and result export components."""

from .aggregator import AggregatedStats, LatencyAggregator, calculate_stats
from .exporter import ResultsExporter, ValuesExporter

__all__ = [
    "AggregatedStats",
    "LatencyAggregator",
    "calculate_stats",
    "ResultsExporter",
    "ValuesExporter",
]
