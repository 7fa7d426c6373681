# src/scenario_player/extensions/timing.py
"""Extension collecting step latency statistics."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional
import logging

from .base import Extension
from ..monitoring.aggregator import LatencyAggregator

logger = logging.getLogger(__name__)


class TimingExtension(Extension):
    """Records the duration of every executed step, grouped by step name."""

    name = "timing"

    def __init__(self, aggregator: Optional[LatencyAggregator] = None):
        self.aggregator = aggregator or LatencyAggregator()

    def on_step_end(self, scenario, step, index: int, outcome, values: Mapping[str, Any]) -> None:
        # Steps rejected before sending anything have nothing to time
        if outcome.status_code is None and outcome.elapsed_ms == 0.0:
            return
        self.aggregator.add_sample(step.name, outcome.elapsed_ms, failed=not outcome.is_success)

    def summary(self) -> Dict[str, Dict[str, float]]:
        """Latency statistics (ms) per step name."""
        return self.aggregator.summary()
