# src/scenario_player/extensions/prometheus.py
"""Extension publishing scenario metrics to Prometheus."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional
import logging

from prometheus_client import CollectorRegistry, Counter, Histogram, push_to_gateway

from .base import Extension

logger = logging.getLogger(__name__)


class PrometheusExtension(Extension):
    """Counts scenarios and steps by outcome and tracks step durations.

    When a pushgateway URL is set, metrics are pushed after each scenario.
    Push failures are logged and never fail the scenario.
    """

    name = "prometheus"

    def __init__(self,
                 pushgateway_url: Optional[str] = None,
                 job_name: str = "scenario_player",
                 instance: str = "scenario_player"):
        """
        Initialize Prometheus extension.

        Args:
            pushgateway_url: URL of Prometheus pushgateway
            job_name: Job name for grouping metrics
            instance: Instance label
        """
        self.pushgateway_url = pushgateway_url
        self.job_name = job_name
        self.instance = instance
        self.registry = CollectorRegistry()
        self._define_metrics()

    def _define_metrics(self) -> None:
        """Define Prometheus metrics."""
        self.scenarios_total = Counter(
            'scenario_player_scenarios_total',
            'Scenarios finished',
            ['status'],
            registry=self.registry
        )
        self.steps_total = Counter(
            'scenario_player_steps_total',
            'Steps finished',
            ['outcome'],
            registry=self.registry
        )
        self.step_duration = Histogram(
            'scenario_player_step_duration_seconds',
            'Step duration in seconds',
            ['step'],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry
        )

    def on_step_end(self, scenario, step, index: int, outcome, values: Mapping[str, Any]) -> None:
        self.steps_total.labels(outcome=outcome.kind.value).inc()
        if outcome.elapsed_ms:
            self.step_duration.labels(step=step.name).observe(outcome.elapsed_ms / 1000.0)

    async def on_scenario_end(self, scenario, result) -> None:
        self.scenarios_total.labels(status=result.status.value).inc()
        if self.pushgateway_url:
            await asyncio.to_thread(self.push_metrics)

    def push_metrics(self) -> None:
        """Push metrics to Prometheus pushgateway."""
        try:
            push_to_gateway(
                self.pushgateway_url,
                job=self.job_name,
                registry=self.registry,
                grouping_key={'instance': self.instance},
            )
            logger.debug("Pushed metrics to Prometheus pushgateway")
        except Exception as e:
            logger.error(f"Failed to push metrics to Prometheus: {e}")

    def sample(self, name: str, **labels) -> Optional[float]:
        """Current value of a metric sample, mainly for reporting."""
        return self.registry.get_sample_value(name, labels)
