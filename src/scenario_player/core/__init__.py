# src/scenario_player/core/__init__.py
"""Core components for scenario playing."""

from .values import ValueStore
from .connection import (
    ClientPool,
    ClientSlot,
    create_session,
)
from .config import (
    Config,
    PlayerConfig,
    HttpConfig,
    MonitoringConfig,
    OutputConfig,
)

__all__ = [
    # Values
    "ValueStore",

    # Client pool
    "ClientPool",
    "ClientSlot",
    "create_session",

    # Configuration
    "Config",
    "PlayerConfig",
    "HttpConfig",
    "MonitoringConfig",
    "OutputConfig",
]
