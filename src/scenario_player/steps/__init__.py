"""Step execution."""

from .base import StepExecutor
from .http import HttpStepExecutor, resolve_url

__all__ = ["StepExecutor", "HttpStepExecutor", "resolve_url"]
