"""CLI command modules."""

from . import run, validate

__all__ = ["run", "validate"]
