"""Example custom extension."""

from scenario_player.extensions import Extension, register_extension
from typing import Any, Dict, Mapping
import threading


@register_extension("slow_steps", "Report steps slower than a threshold")
class SlowStepExtension(Extension):
    """Collects steps that took longer than `threshold_ms`."""

    def __init__(self, threshold_ms: float = 500.0):
        self.threshold_ms = threshold_ms
        self.slow: Dict[str, int] = {}
        self._lock = threading.Lock()

    async def on_step_end(self, scenario, step, index: int, outcome, values: Mapping[str, Any]) -> None:
        if outcome.elapsed_ms < self.threshold_ms:
            return
        with self._lock:
            self.slow[step.name] = self.slow.get(step.name, 0) + 1

    def on_scenario_end(self, scenario, result) -> None:
        if self.slow:
            print(f"{scenario.name}: slow steps so far {self.slow}")
