# src/scenario_player/extensions/log.py
"""Extension reporting scenario progress to the log."""

from __future__ import annotations

from typing import Any, Mapping, Optional
import logging

from .base import Extension

logger = logging.getLogger(__name__)


class LoggingExtension(Extension):
    """Logs every lifecycle event of every scenario run."""

    name = "logging"

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def on_scenario_start(self, scenario, values: Mapping[str, Any]) -> None:
        self.log.info(f"[{scenario.name}] started with {len(scenario.steps)} steps")

    def on_step_start(self, scenario, step, index: int, values: Mapping[str, Any]) -> None:
        self.log.debug(f"[{scenario.name}] step {index} {step.name}")

    def on_step_end(self, scenario, step, index: int, outcome, values: Mapping[str, Any]) -> None:
        if outcome.is_success:
            self.log.debug(f"[{scenario.name}] step {index} {step.name}: "
                           f"{outcome.status_code} in {outcome.elapsed_ms:.1f}ms")
        else:
            self.log.warning(f"[{scenario.name}] step {index} {step.name}: "
                             f"{outcome.kind.value}: {outcome.reason}")

    def on_scenario_end(self, scenario, result) -> None:
        if result.is_errored:
            self.log.warning(f"[{scenario.name}] errored: {result.error}")
        else:
            self.log.info(f"[{scenario.name}] completed in {result.elapsed_seconds:.2f}s")
