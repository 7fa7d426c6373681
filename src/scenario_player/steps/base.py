# src/scenario_player/steps/base.py
"""Base class for step execution."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from ..core.connection import ClientSlot
    from ..scenarios.models import Scenario, Step
    from ..scenarios.results import StepOutcome

logger = logging.getLogger(__name__)


class StepExecutor(ABC):
    """Abstract base class for anything able to run one scenario step.

    Implementations are shared by every concurrently running scenario and
    are called from the worker thread of each scenario's pool slot, so
    they must not keep per-run state on the instance.
    """

    @abstractmethod
    async def execute(self,
                      step: Step,
                      slot: ClientSlot,
                      values: Mapping[str, Any],
                      scenario: Scenario) -> StepOutcome:
        """
        Execute one step.

        Args:
            step: Step definition
            slot: Client slot exclusively held by the calling scenario run
            values: Read-only view of the run's value store
            scenario: Scenario the step belongs to

        Returns:
            StepOutcome carrying value updates on success, or the failure
            reason. Transport and assertion problems are reported as
            outcomes rather than raised.
        """
        pass

    async def close(self) -> None:
        """Release resources held by the executor."""
        logger.debug(f"Closing {self.__class__.__name__}")
