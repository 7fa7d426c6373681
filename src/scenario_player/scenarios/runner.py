"""Execution of a single scenario."""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Optional
import logging

from .models import Scenario, Step
from .results import ResultStatus, ScenarioResult, StepOutcome
from ..core.connection import ClientSlot
from ..core.values import ValueStore
from ..extensions.base import ExtensionDispatcher, ExtensionError, HookEvent
from ..steps.base import StepExecutor

logger = logging.getLogger(__name__)


class EngineFault(Exception):
    """Unexpected internal failure while running a scenario."""
    pass


class ScenarioRunner:
    """Drives one scenario's steps in order and produces its result.

    Every failure, whether from a step, an extension or the engine itself,
    ends up in the returned ScenarioResult; `run` does not raise.
    """

    def __init__(self,
                 executor: StepExecutor,
                 logger: Optional[logging.Logger] = None):
        """Initialize scenario runner."""
        self.executor = executor
        self.logger = logger or logging.getLogger(__name__)

    async def run(self,
                  scenario: Scenario,
                  slot: ClientSlot,
                  dispatcher: ExtensionDispatcher) -> ScenarioResult:
        """Execute a complete scenario on the given client slot."""
        log = self.logger
        log.info(f"Starting scenario: {scenario.name} (slot {slot.index})")

        start_time = time.monotonic()
        values = ValueStore(scenario.variables)
        failure: Optional[StepOutcome] = None
        failed_index: Optional[int] = None
        current_index: Optional[int] = None
        attempted = 0

        try:
            try:
                await dispatcher.notify(HookEvent.SCENARIO_START, scenario, values=values.view())
            except ExtensionError as e:
                log.error(f"Scenario {scenario.name}: {e}")
                failure = StepOutcome.extension_error(str(e))

            if failure is None:
                for index, step in enumerate(scenario.steps):
                    current_index = index
                    attempted = index + 1
                    log.debug(f"Scenario {scenario.name}: step {attempted}/{len(scenario.steps)} {step.name}")

                    outcome = await self._run_step(scenario, step, index, slot, values, dispatcher)
                    if outcome.is_fatal:
                        failure = outcome
                        failed_index = index
                        log.warning(f"Scenario {scenario.name} stopped at step {index} "
                                    f"({step.name}): {outcome.kind.value}: {outcome.reason}")
                        break

        except Exception as e:
            log.exception(f"Engine fault in scenario {scenario.name}: {e}")
            failure = StepOutcome.engine_fault(f"{type(e).__name__}: {e}")
            failed_index = current_index

        result = ScenarioResult(
            scenario_name=scenario.name,
            status=ResultStatus.ERRORED if failure else ResultStatus.COMPLETED,
            values=values.snapshot(),
            failed_step_index=failed_index,
            failure=failure,
            steps_attempted=attempted,
            elapsed_seconds=time.monotonic() - start_time,
        )

        try:
            await dispatcher.notify(HookEvent.SCENARIO_END, scenario, result=result)
        except Exception as e:
            log.error(f"Scenario {scenario.name}: {e}")
            if not result.is_errored:
                result = replace(
                    result,
                    status=ResultStatus.ERRORED,
                    failure=StepOutcome.extension_error(str(e)),
                )

        if result.is_errored:
            log.info(f"Scenario {scenario.name} errored after {result.elapsed_seconds:.2f}s")
        else:
            log.info(f"Scenario {scenario.name} completed in {result.elapsed_seconds:.2f}s")
        return result

    async def _run_step(self,
                        scenario: Scenario,
                        step: Step,
                        index: int,
                        slot: ClientSlot,
                        values: ValueStore,
                        dispatcher: ExtensionDispatcher) -> StepOutcome:
        """Execute a single step surrounded by its hooks."""
        try:
            await dispatcher.notify(HookEvent.STEP_START, scenario, step=step, index=index,
                                    values=values.view())
        except ExtensionError as e:
            outcome = StepOutcome.extension_error(str(e))
            # Keep start/end hooks paired even though the step never ran
            await self._notify_step_end_quietly(scenario, step, index, outcome, values, dispatcher)
            return outcome

        try:
            outcome = await self.executor.execute(step, slot, values.view(), scenario)
        except Exception as e:
            self.logger.exception(f"Step executor raised on {step.name}: {e}")
            outcome = StepOutcome.engine_fault(f"{type(e).__name__}: {e}")

        if not isinstance(outcome, StepOutcome):
            raise EngineFault(f"Step executor returned {type(outcome).__name__} instead of StepOutcome")

        if outcome.is_success:
            values.update(outcome.values)

        try:
            await dispatcher.notify(HookEvent.STEP_END, scenario, step=step, index=index,
                                    outcome=outcome, values=values.view())
        except ExtensionError as e:
            self.logger.error(f"Scenario {scenario.name}: {e}")
            if outcome.is_success:
                outcome = StepOutcome.extension_error(str(e), values=outcome.values,
                                                      status_code=outcome.status_code,
                                                      elapsed_ms=outcome.elapsed_ms)

        return outcome

    async def _notify_step_end_quietly(self, scenario, step, index, outcome, values, dispatcher) -> None:
        """Notify step end, logging instead of raising on hook failure."""
        try:
            await dispatcher.notify(HookEvent.STEP_END, scenario, step=step, index=index,
                                    outcome=outcome, values=values.view())
        except ExtensionError as e:
            self.logger.error(f"Scenario {scenario.name}: {e}")
