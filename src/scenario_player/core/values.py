# src/scenario_player/core/values.py
"""Per-run storage of extracted variables."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional
import logging

logger = logging.getLogger(__name__)


class ValueStore:
    """Mapping of variable name to extracted value, scoped to one scenario run.
    
    Keys are only replaced when a step explicitly redefines them
    (last write wins). The store is never shared between runs; collaborators
    get a read-only view and hand back updates instead of writing directly.
    """
    
    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        """Initialize store, optionally seeded with initial variables."""
        self._values: Dict[str, Any] = {}
        if initial:
            self.update(initial)
    
    def get(self, name: str, default: Any = None) -> Any:
        """Get a value by name."""
        return self._values.get(name, default)
    
    def set(self, name: str, value: Any) -> None:
        """Define or redefine a single value."""
        if not isinstance(name, str) or not name:
            raise ValueError(f"Variable name must be a non-empty string: {name!r}")
        
        if name in self._values and self._values[name] != value:
            logger.debug(f"Redefining variable '{name}'")
        self._values[name] = value
    
    def update(self, values: Mapping[str, Any]) -> None:
        """Merge a mapping of updates into the store."""
        for name, value in values.items():
            self.set(name, value)
    
    def view(self) -> Mapping[str, Any]:
        """Read-only live view of the store."""
        return MappingProxyType(self._values)
    
    def all(self) -> Dict[str, Any]:
        """Return an independent flat copy of all values."""
        return dict(self._values)
    
    snapshot = all
    
    def __getitem__(self, name: str) -> Any:
        return self._values[name]
    
    def __contains__(self, name: object) -> bool:
        return name in self._values
    
    def __iter__(self) -> Iterator[str]:
        return iter(self._values)
    
    def __len__(self) -> int:
        return len(self._values)
    
    def __repr__(self) -> str:
        return f"ValueStore({self._values!r})"
