"""Step outcomes and scenario results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, overload


class OutcomeKind(Enum):
    """Kinds of step outcome."""
    SUCCESS = "success"
    ASSERTION_FAILED = "assertion_failed"
    TRANSPORT_ERROR = "transport_error"
    EXTENSION_ERROR = "extension_error"
    ENGINE_FAULT = "engine_fault"


class ResultStatus(Enum):
    """Terminal status of a scenario run."""
    COMPLETED = "completed"
    ERRORED = "errored"


@dataclass(frozen=True)
class StepOutcome:
    """Result of executing one step."""
    kind: OutcomeKind
    values: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    status_code: Optional[int] = None
    elapsed_ms: float = 0.0

    @classmethod
    def success(cls, values: Optional[Dict[str, Any]] = None, **kwargs) -> StepOutcome:
        return cls(OutcomeKind.SUCCESS, values=dict(values or {}), **kwargs)

    @classmethod
    def assertion_failed(cls, reason: str, **kwargs) -> StepOutcome:
        return cls(OutcomeKind.ASSERTION_FAILED, reason=reason, **kwargs)

    @classmethod
    def transport_error(cls, reason: str, **kwargs) -> StepOutcome:
        return cls(OutcomeKind.TRANSPORT_ERROR, reason=reason, **kwargs)

    @classmethod
    def extension_error(cls, reason: str, **kwargs) -> StepOutcome:
        return cls(OutcomeKind.EXTENSION_ERROR, reason=reason, **kwargs)

    @classmethod
    def engine_fault(cls, reason: str, **kwargs) -> StepOutcome:
        return cls(OutcomeKind.ENGINE_FAULT, reason=reason, **kwargs)

    @property
    def is_success(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @property
    def is_fatal(self) -> bool:
        """Every non-success outcome ends the scenario."""
        return self.kind != OutcomeKind.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "kind": self.kind.value,
            "reason": self.reason,
            "status_code": self.status_code,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass(frozen=True)
class ScenarioResult:
    """Terminal outcome of one scenario run."""
    scenario_name: str
    status: ResultStatus
    values: Dict[str, Any] = field(default_factory=dict)
    failed_step_index: Optional[int] = None
    failure: Optional[StepOutcome] = None
    steps_attempted: int = 0
    elapsed_seconds: float = 0.0

    @property
    def is_errored(self) -> bool:
        return self.status == ResultStatus.ERRORED

    @property
    def is_completed(self) -> bool:
        return self.status == ResultStatus.COMPLETED

    @property
    def error(self) -> Optional[str]:
        """Failure reason, if any."""
        return self.failure.reason if self.failure else None

    def get_values(self) -> Dict[str, Any]:
        """Flat copy of the extracted values."""
        return dict(self.values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for export."""
        return {
            "scenario": self.scenario_name,
            "status": self.status.value,
            "steps_attempted": self.steps_attempted,
            "elapsed_seconds": self.elapsed_seconds,
            "failed_step_index": self.failed_step_index,
            "failure": self.failure.to_dict() if self.failure else None,
            "values": self.get_values(),
        }


class ResultSet(Sequence[ScenarioResult]):
    """Ordered results of a batch, one per input scenario."""

    def __init__(self, results: Sequence[ScenarioResult]):
        self._results: List[ScenarioResult] = list(results)

    @overload
    def __getitem__(self, index: int) -> ScenarioResult: ...

    @overload
    def __getitem__(self, index: slice) -> List[ScenarioResult]: ...

    def __getitem__(self, index):
        return self._results[index]

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[ScenarioResult]:
        return iter(self._results)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResultSet):
            return self._results == other._results
        if isinstance(other, list):
            return self._results == other
        return NotImplemented

    @property
    def is_errored(self) -> bool:
        """True if at least one scenario errored."""
        return any(result.is_errored for result in self._results)

    @property
    def errored(self) -> List[ScenarioResult]:
        return [result for result in self._results if result.is_errored]

    @property
    def completed(self) -> List[ScenarioResult]:
        return [result for result in self._results if result.is_completed]

    @property
    def exit_code(self) -> int:
        """Process exit code for the batch."""
        return 1 if self.is_errored else 0

    def statuses(self) -> List[ResultStatus]:
        return [result.status for result in self._results]

    def values(self) -> List[Dict[str, Any]]:
        """Value snapshots of every scenario, in input order."""
        return [result.get_values() for result in self._results]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for export."""
        return {
            "total": len(self._results),
            "completed": len(self.completed),
            "errored": len(self.errored),
            "results": [result.to_dict() for result in self._results],
        }
