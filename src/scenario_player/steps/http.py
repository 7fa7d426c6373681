# src/scenario_player/steps/http.py
"""HTTP step executor built on aiohttp."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Mapping, Optional
import logging

import aiohttp

from .base import StepExecutor
from .expressions import (
    MISSING,
    ResponseData,
    ResponseDecodeError,
    UndefinedVariable,
    check,
    extract,
    render,
)
from ..core.config import HttpConfig
from ..core.connection import ClientSlot
from ..scenarios.models import Scenario, Step
from ..scenarios.results import StepOutcome

logger = logging.getLogger(__name__)


def resolve_url(url: str, endpoint: Optional[str]) -> str:
    """Prefix relative URLs with the scenario endpoint."""
    if "://" in url or not endpoint:
        return url
    return f"{endpoint.rstrip('/')}/{url.lstrip('/')}"


class HttpStepExecutor(StepExecutor):
    """Runs steps as HTTP requests on the slot's aiohttp session."""

    def __init__(self, http_config: Optional[HttpConfig] = None):
        """
        Initialize HTTP step executor.

        Args:
            http_config: Request behaviour settings
        """
        self.config = http_config or HttpConfig()

    async def execute(self,
                      step: Step,
                      slot: ClientSlot,
                      values: Mapping[str, Any],
                      scenario: Scenario) -> StepOutcome:
        """Send the step's request, check its assertions and extract values."""
        try:
            url = resolve_url(render(step.url, values), scenario.endpoint)
            headers = {str(k): str(v) for k, v in render(step.headers, values).items()}
            query = {str(k): str(v) for k, v in render(step.query, values).items()}
            json_body = render(step.json, values)
            body = render(step.body, values)
        except UndefinedVariable as e:
            return StepOutcome.assertion_failed(f"Undefined variable '{e.name}' in step {step.name}")

        if "://" not in url:
            return StepOutcome.transport_error(f"No endpoint configured for relative URL {url}")

        session = slot.client
        if session is None:
            return StepOutcome.transport_error(f"Slot {slot.index} has no HTTP client")

        request_options: Dict[str, Any] = {
            "headers": headers or None,
            "params": query or None,
            "allow_redirects": self.config.follow_redirects,
        }
        if json_body is not None:
            request_options["json"] = json_body
        elif body is not None:
            request_options["data"] = body if isinstance(body, (str, bytes)) else str(body)

        start_time = time.perf_counter()
        try:
            async with session.request(step.method.upper(), url, **request_options) as resp:
                text = await resp.text(errors="replace")
                response = ResponseData(
                    status=resp.status,
                    headers={k.lower(): v for k, v in resp.headers.items()},
                    text=text,
                )
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            return StepOutcome.transport_error(f"Request timed out: {step.method} {url}",
                                               elapsed_ms=elapsed_ms)
        except aiohttp.ClientError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            return StepOutcome.transport_error(f"{type(e).__name__}: {e}", elapsed_ms=elapsed_ms)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"{step.method} {url} -> {response.status} in {elapsed_ms:.1f}ms")

        try:
            return self._evaluate(step, response, elapsed_ms)
        except ResponseDecodeError as e:
            return StepOutcome.transport_error(str(e), status_code=response.status,
                                               elapsed_ms=elapsed_ms)

    def _evaluate(self, step: Step, response: ResponseData, elapsed_ms: float) -> StepOutcome:
        """Check expectations then extract values from a received response."""
        if step.expect_status is not None and response.status != step.expect_status:
            return StepOutcome.assertion_failed(
                f"Expected status {step.expect_status}, got {response.status}",
                status_code=response.status, elapsed_ms=elapsed_ms)

        for assertion in step.assertions:
            try:
                reason = check(assertion, response)
            except ValueError as e:
                if isinstance(e, ResponseDecodeError):
                    raise
                reason = str(e)
            if reason:
                return StepOutcome.assertion_failed(reason, status_code=response.status,
                                                    elapsed_ms=elapsed_ms)

        extracted: Dict[str, Any] = {}
        for name, source in step.extract.items():
            try:
                value = extract(source, response)
            except ValueError as e:
                if isinstance(e, ResponseDecodeError):
                    raise
                return StepOutcome.assertion_failed(str(e), status_code=response.status,
                                                    elapsed_ms=elapsed_ms)
            if value is MISSING:
                return StepOutcome.assertion_failed(
                    f"Could not extract '{name}' from {source}",
                    status_code=response.status, elapsed_ms=elapsed_ms)
            extracted[name] = value

        return StepOutcome.success(extracted, status_code=response.status, elapsed_ms=elapsed_ms)
