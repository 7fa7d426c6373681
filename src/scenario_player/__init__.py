"""Concurrent HTTP scenario player."""

__version__ = "0.1.0"

from .core import ClientPool, ClientSlot, Config, ValueStore, create_session
from .extensions import Extension, ExtensionDispatcher, ExtensionError, HookEvent
from .scenarios import (
    Player,
    ResultSet,
    ResultStatus,
    Scenario,
    ScenarioLoader,
    ScenarioResult,
    ScenarioRunner,
    Step,
    StepOutcome,
)
from .steps import HttpStepExecutor, StepExecutor

__all__ = [
    "__version__",
    "ClientPool",
    "ClientSlot",
    "Config",
    "ValueStore",
    "create_session",
    "Extension",
    "ExtensionDispatcher",
    "ExtensionError",
    "HookEvent",
    "Player",
    "ResultSet",
    "ResultStatus",
    "Scenario",
    "ScenarioLoader",
    "ScenarioResult",
    "ScenarioRunner",
    "Step",
    "StepOutcome",
    "HttpStepExecutor",
    "StepExecutor",
]
