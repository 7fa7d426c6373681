# src/scenario_player/extensions/base.py
"""Extension interface and lifecycle hook dispatch."""

from __future__ import annotations

import inspect
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, List, Mapping, Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from ..scenarios.models import Scenario, Step
    from ..scenarios.results import ScenarioResult, StepOutcome

logger = logging.getLogger(__name__)


class HookEvent(Enum):
    """Lifecycle points at which extensions are notified."""
    SCENARIO_START = "on_scenario_start"
    STEP_START = "on_step_start"
    STEP_END = "on_step_end"
    SCENARIO_END = "on_scenario_end"


class ExtensionError(Exception):
    """Raised when an extension hook fails."""

    def __init__(self, extension: str, event: HookEvent, error: BaseException):
        self.extension = extension
        self.event = event
        self.error = error
        super().__init__(f"Extension {extension} failed in {event.value}: {error}")


class Extension:
    """Cross-cutting observer of scenario runs.

    Every hook is optional; the defaults do nothing. Hooks may be plain
    methods or coroutines. One instance is shared by all concurrently
    running scenarios, which call it from different threads, so extensions
    guard their own shared state with thread-safe primitives.
    """

    name: Optional[str] = None

    def on_scenario_start(self, scenario: Scenario, values: Mapping[str, Any]) -> Any:
        pass

    def on_step_start(self, scenario: Scenario, step: Step, index: int,
                      values: Mapping[str, Any]) -> Any:
        pass

    def on_step_end(self, scenario: Scenario, step: Step, index: int,
                    outcome: StepOutcome, values: Mapping[str, Any]) -> Any:
        pass

    def on_scenario_end(self, scenario: Scenario, result: ScenarioResult) -> Any:
        pass


def extension_name(extension: Any) -> str:
    """Display name of an extension."""
    return getattr(extension, "name", None) or extension.__class__.__name__


class ExtensionDispatcher:
    """Ordered list of extensions, notified around engine actions.

    Calls are serialized only with respect to the scenario run that
    triggers them; different runs notify concurrently.
    """

    def __init__(self, extensions: Optional[List[Any]] = None):
        """Initialize dispatcher."""
        self._extensions: List[Any] = []
        self._active_batches = 0
        for extension in extensions or []:
            self.register(extension)

    @property
    def extensions(self) -> List[Any]:
        return list(self._extensions)

    @property
    def is_running(self) -> bool:
        return self._active_batches > 0

    def register(self, extension: Any) -> None:
        """Append an extension. Not allowed while a batch is running."""
        if self.is_running:
            raise RuntimeError("Extensions cannot be registered while scenarios are running")

        if not any(callable(getattr(extension, event.value, None)) for event in HookEvent):
            raise TypeError(f"{extension_name(extension)} implements no lifecycle hook")

        self._extensions.append(extension)
        logger.info(f"Registered extension: {extension_name(extension)}")

    @contextmanager
    def running(self) -> Iterator[None]:
        """Freeze registration for the duration of a batch."""
        self._active_batches += 1
        try:
            yield
        finally:
            self._active_batches -= 1

    async def notify(self,
                     event: HookEvent,
                     scenario: Scenario,
                     step: Optional[Step] = None,
                     index: Optional[int] = None,
                     outcome: Optional[StepOutcome] = None,
                     values: Optional[Mapping[str, Any]] = None,
                     result: Optional[ScenarioResult] = None) -> None:
        """
        Call the matching hook of every extension in registration order.

        Raises:
            ExtensionError: wrapping the first hook failure; extensions after
                the failing one are not called for this event.
        """
        if event == HookEvent.SCENARIO_START:
            args = (scenario, values)
        elif event == HookEvent.STEP_START:
            args = (scenario, step, index, values)
        elif event == HookEvent.STEP_END:
            args = (scenario, step, index, outcome, values)
        else:
            args = (scenario, result)

        for extension in self._extensions:
            hook = getattr(extension, event.value, None)
            if hook is None:
                continue

            try:
                returned = hook(*args)
                if inspect.isawaitable(returned):
                    await returned
            except Exception as e:
                raise ExtensionError(extension_name(extension), event, e) from e

    def __len__(self) -> int:
        return len(self._extensions)
