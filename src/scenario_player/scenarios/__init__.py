"""Scenario definition and execution components."""

from .models import Assertion, AssertionOp, Scenario, Step
from .results import OutcomeKind, ResultSet, ResultStatus, ScenarioResult, StepOutcome
from .loader import ScenarioLoader, ScenarioLoadError
from .runner import EngineFault, ScenarioRunner
from .player import Player, ScenarioState

__all__ = [
    "Assertion",
    "AssertionOp",
    "Scenario",
    "Step",
    "OutcomeKind",
    "ResultSet",
    "ResultStatus",
    "ScenarioResult",
    "StepOutcome",
    "ScenarioLoader",
    "ScenarioLoadError",
    "EngineFault",
    "ScenarioRunner",
    "Player",
    "ScenarioState",
]
