# src/scenario_player/extensions/registry.py
"""Extension registration and discovery."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Type
import logging
import inspect

logger = logging.getLogger(__name__)


class ExtensionRegistry:
    """Registry for extensions selectable by name."""

    _extensions: Dict[str, Type] = {}
    _descriptions: Dict[str, str] = {}

    @classmethod
    def register(cls,
                 name: str,
                 extension_class: Type,
                 description: Optional[str] = None) -> None:
        """
        Register an extension class.

        Args:
            name: Unique name for the extension
            extension_class: Extension class
            description: Optional description of the extension
        """
        if not inspect.isclass(extension_class):
            raise TypeError(f"Expected class, got {type(extension_class)}")

        if name in cls._extensions:
            logger.warning(f"Overwriting existing extension registration: {name}")

        cls._extensions[name] = extension_class
        doc = (extension_class.__doc__ or "").strip().splitlines()
        cls._descriptions[name] = description or (doc[0] if doc else "No description available")

        logger.debug(f"Registered extension: {name} -> {extension_class.__name__}")

    @classmethod
    def get(cls, name: str) -> Type:
        """
        Get an extension class by name.

        Raises:
            KeyError: If extension not found
        """
        if name not in cls._extensions:
            available = ", ".join(cls.list_extensions())
            raise KeyError(f"Extension '{name}' not found. Available extensions: {available}")

        return cls._extensions[name]

    @classmethod
    def create_instance(cls, name: str, **kwargs) -> Any:
        """Create an extension instance by name."""
        return cls.get(name)(**kwargs)

    @classmethod
    def list_extensions(cls) -> List[str]:
        return sorted(cls._extensions.keys())

    @classmethod
    def get_extension_info(cls) -> List[Dict[str, str]]:
        """
        Get information about all registered extensions.

        Returns:
            List of dicts with extension information
        """
        return [
            {
                "name": name,
                "class": cls._extensions[name].__name__,
                "module": cls._extensions[name].__module__,
                "description": cls._descriptions[name],
            }
            for name in cls.list_extensions()
        ]

    @classmethod
    def clear(cls) -> None:
        """Clear all registered extensions (mainly for testing)."""
        cls._extensions.clear()
        cls._descriptions.clear()


def register_extension(name: str, description: Optional[str] = None) -> Callable:
    """
    Decorator to register an extension class.

    Args:
        name: Unique name for the extension
        description: Optional description
    """
    def decorator(cls: Type) -> Type:
        ExtensionRegistry.register(name, cls, description)
        return cls

    return decorator


def register_builtin_extensions() -> None:
    """Register all built-in extensions."""
    from .log import LoggingExtension
    from .prometheus import PrometheusExtension
    from .timing import TimingExtension

    ExtensionRegistry.register("logging", LoggingExtension, "Log scenario and step lifecycle events")
    ExtensionRegistry.register("timing", TimingExtension, "Step latency percentiles")
    ExtensionRegistry.register("prometheus", PrometheusExtension,
                               "Prometheus counters and step duration histogram")


register_builtin_extensions()
