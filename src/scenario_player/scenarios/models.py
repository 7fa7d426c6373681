"""Data models for scenario definitions."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Any, List, Optional, Tuple
from enum import Enum


class AssertionOp(Enum):
    """Comparison operators available to step assertions."""
    EQUALS = "=="
    NOT_EQUALS = "!="
    CONTAINS = "contains"
    MATCHES = "matches"
    EXISTS = "exists"
    LESS_THAN = "<"
    GREATER_THAN = ">"
    LESS_EQUAL = "<="
    GREATER_EQUAL = ">="


@dataclass(frozen=True)
class Assertion:
    """Single check applied to a step's response."""
    source: str
    op: AssertionOp
    expected: Any = None

    def describe(self) -> str:
        """Human readable form of the assertion."""
        if self.op == AssertionOp.EXISTS:
            return f"{self.source} exists"
        return f"{self.source} {self.op.value} {self.expected!r}"


@dataclass(frozen=True)
class Step:
    """Single HTTP interaction in a scenario."""
    name: str
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    json: Any = None
    body: Optional[str] = None
    extract: Dict[str, str] = field(default_factory=dict)
    assertions: Tuple[Assertion, ...] = ()
    expect_status: Optional[int] = None

    def validate(self) -> bool:
        """Validate step configuration."""
        if not self.name or not self.url:
            return False

        if self.json is not None and self.body is not None:
            return False

        for variable in self.extract:
            if not variable:
                return False

        return True


@dataclass(frozen=True)
class Scenario:
    """Complete scenario definition.

    Scenarios are immutable so any number of runs can share one instance.
    """
    name: str
    steps: Tuple[Step, ...]
    endpoint: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self):
        # Accept any sequence but always store a tuple
        if not isinstance(self.steps, tuple):
            object.__setattr__(self, "steps", tuple(self.steps))

    def validate(self) -> bool:
        """Validate scenario configuration."""
        if not self.name:
            return False

        if not self.steps:
            return False

        for step in self.steps:
            if not step.validate():
                return False

        return True

    def with_endpoint(self, endpoint: Optional[str]) -> Scenario:
        """Return a copy of the scenario targeting another endpoint."""
        return replace(self, endpoint=endpoint)

    def step_names(self) -> List[str]:
        """Names of all steps in order."""
        return [step.name for step in self.steps]
