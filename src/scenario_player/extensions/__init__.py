# src/scenario_player/extensions/__init__.py
"""Lifecycle extensions."""

from .base import (
    Extension,
    ExtensionDispatcher,
    ExtensionError,
    HookEvent,
)
from .log import LoggingExtension
from .timing import TimingExtension
from .prometheus import PrometheusExtension
from .registry import (
    ExtensionRegistry,
    register_extension,
    register_builtin_extensions,
)

__all__ = [
    "Extension",
    "ExtensionDispatcher",
    "ExtensionError",
    "HookEvent",
    "LoggingExtension",
    "TimingExtension",
    "PrometheusExtension",
    "ExtensionRegistry",
    "register_extension",
    "register_builtin_extensions",
]
