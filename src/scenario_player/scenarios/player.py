"""Concurrent scenario orchestration."""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional
import logging

from .models import Scenario
from .results import ResultSet, ResultStatus, ScenarioResult, StepOutcome
from .runner import ScenarioRunner
from ..core.connection import ClientPool
from ..extensions.base import ExtensionDispatcher
from ..steps.base import StepExecutor

logger = logging.getLogger(__name__)


class ScenarioState(Enum):
    """Scheduling state of a scenario within a batch."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERRORED = "errored"


class Player:
    """Plays batches of scenarios over a bounded pool of HTTP clients.

    At most ``pool.size`` scenarios run at once, each in the worker thread
    of the pool slot it owns for its whole duration. A step executor or
    extension hook that blocks only holds up its own scenario. Results come
    back in input order whatever order the runs finish in.
    """

    def __init__(self,
                 pool: ClientPool,
                 executor: StepExecutor,
                 extensions: Optional[List[Any]] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize player.

        Args:
            pool: Client pool; its size is the concurrency limit
            executor: Step executor shared by all scenario runs
            extensions: Extensions to register up front
            logger: Logger shared by every run (defaults to the module logger)
        """
        if not isinstance(pool, ClientPool):
            raise TypeError(f"Expected ClientPool, got {type(pool).__name__}")

        self.pool = pool
        self.executor = executor
        self.logger = logger or logging.getLogger(__name__)
        self.dispatcher = ExtensionDispatcher(extensions)
        self.runner = ScenarioRunner(executor, logger=self.logger)

        self.states: List[ScenarioState] = []
        self.max_running = 0
        self._running = 0

    @classmethod
    def create(cls,
               concurrency: int,
               executor: StepExecutor,
               client_factory: Optional[Callable[[], Any]] = None,
               reset_on_release: bool = False,
               **kwargs) -> Player:
        """Build a player together with a pool of `concurrency` clients."""
        pool = ClientPool(concurrency, client_factory=client_factory,
                          reset_on_release=reset_on_release)
        return cls(pool, executor, **kwargs)

    @property
    def concurrency(self) -> int:
        return self.pool.size

    def add_extension(self, extension: Any) -> None:
        """Register an extension. Only allowed between batches."""
        self.dispatcher.register(extension)

    async def run(self, scenario: Scenario) -> ScenarioResult:
        """Play a single scenario."""
        results = await self.run_multi([scenario])
        return results[0]

    async def run_multi(self, scenarios: Iterable[Scenario]) -> ResultSet:
        """
        Play every scenario and collect one result per scenario.

        Args:
            scenarios: Scenarios to play

        Returns:
            ResultSet ordered like the input

        Raises:
            TypeError: if an item is not a Scenario (before anything runs)
        """
        scenarios = list(scenarios)
        for i, scenario in enumerate(scenarios):
            if not isinstance(scenario, Scenario):
                raise TypeError(f"Item {i} is not a Scenario: {type(scenario).__name__}")

        self.logger.info(f"Playing {len(scenarios)} scenarios with concurrency {self.concurrency}")
        start_time = time.monotonic()

        results: List[Optional[ScenarioResult]] = [None] * len(scenarios)
        self.states = [ScenarioState.PENDING] * len(scenarios)
        self.max_running = 0

        with self.dispatcher.running():
            outcomes = await asyncio.gather(
                *(self._play(i, scenario, results) for i, scenario in enumerate(scenarios)),
                return_exceptions=True,
            )

        # Anything that escaped _play still gets a result
        for i, outcome in enumerate(outcomes):
            if results[i] is None:
                error = outcome if isinstance(outcome, BaseException) else None
                results[i] = self._fault_result(scenarios[i], error)
                self.states[i] = ScenarioState.ERRORED

        result_set = ResultSet(results)
        self.logger.info(f"Played {len(result_set)} scenarios in {time.monotonic() - start_time:.2f}s: "
                         f"{len(result_set.completed)} completed, {len(result_set.errored)} errored")
        return result_set

    async def _play(self, index: int, scenario: Scenario, results: List[Optional[ScenarioResult]]) -> None:
        """Run one scenario on a pool slot, releasing the slot whatever happens."""
        slot = await self.pool.acquire()
        self.states[index] = ScenarioState.RUNNING
        self._running += 1
        self.max_running = max(self.max_running, self._running)

        try:
            # Runs on the slot's own thread and event loop
            result = await slot.run(self.runner.run, scenario, slot, self.dispatcher)
        except Exception as e:
            self.logger.exception(f"Unhandled fault while playing {scenario.name}: {e}")
            result = self._fault_result(scenario, e)
        finally:
            self._running -= 1
            self.pool.release(slot)

        results[index] = result
        self.states[index] = (ScenarioState.ERRORED if result.status == ResultStatus.ERRORED
                              else ScenarioState.COMPLETED)

    @staticmethod
    def _fault_result(scenario: Scenario, error: Optional[BaseException]) -> ScenarioResult:
        reason = f"{type(error).__name__}: {error}" if error else "Scenario produced no result"
        return ScenarioResult(
            scenario_name=scenario.name,
            status=ResultStatus.ERRORED,
            values=dict(scenario.variables),
            failure=StepOutcome.engine_fault(reason),
        )
