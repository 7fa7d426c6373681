"""YAML scenario file parser."""

from __future__ import annotations

import yaml
from pathlib import Path
from typing import Dict, Any, List, Union
import logging
from .models import Assertion, AssertionOp, Scenario, Step
from ..steps.expressions import compile_pattern, parse_assertion, validate_source

logger = logging.getLogger(__name__)

HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}


class ScenarioLoadError(ValueError):
    """Raised when a scenario file cannot be turned into scenarios."""
    pass


class ScenarioLoader:
    """Loads and parses scenario definitions from YAML files.

    A file holds either a single scenario mapping or a mapping with a
    top-level ``scenarios`` list.
    """

    def load_file(self, scenario_path: Union[str, Path]) -> List[Scenario]:
        """Load all scenarios from a YAML file."""
        scenario_path = Path(scenario_path)
        logger.info(f"Loading scenarios from: {scenario_path}")

        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")

        with open(scenario_path, 'r') as f:
            text = f.read()

        try:
            return self.load_string(text)
        except ScenarioLoadError as e:
            raise ScenarioLoadError(f"{scenario_path}: {e}") from e

    def load_string(self, text: str) -> List[Scenario]:
        """Load all scenarios from YAML text."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ScenarioLoadError(f"Invalid YAML: {e}") from e

        errors = self.validate_data(data)
        if errors:
            raise ScenarioLoadError("; ".join(errors))

        scenarios = [self._create_scenario(item) for item in self._scenario_items(data)]
        logger.info(f"Loaded {len(scenarios)} scenarios "
                    f"with {sum(len(s.steps) for s in scenarios)} steps")
        return scenarios

    def validate_data(self, data: Any) -> List[str]:
        """
        Validate raw scenario data.

        Returns:
            List of error messages, empty when the data is valid
        """
        if not isinstance(data, dict):
            return ["Scenario file must contain a mapping"]

        items = self._scenario_items(data)
        if not isinstance(items, list) or not items:
            return ["'scenarios' must be a non-empty list"]

        errors: List[str] = []
        for i, item in enumerate(items):
            errors.extend(self._validate_scenario(item, i))
        return errors

    def _scenario_items(self, data: Dict[str, Any]) -> Any:
        if "scenarios" in data:
            return data["scenarios"]
        return [data]

    def _validate_scenario(self, item: Any, index: int) -> List[str]:
        """Validate one scenario mapping."""
        if not isinstance(item, dict):
            return [f"Scenario {index}: must be a mapping"]

        label = f"Scenario {index} ({item.get('name', 'unnamed')})"
        errors = []

        if not item.get("name"):
            errors.append(f"Scenario {index}: missing 'name' field")

        if "endpoint" in item and item["endpoint"] is not None and not isinstance(item["endpoint"], str):
            errors.append(f"{label}: 'endpoint' must be a string")

        if not isinstance(item.get("variables", {}) or {}, dict):
            errors.append(f"{label}: 'variables' must be a mapping")

        steps = item.get("steps")
        if not isinstance(steps, list) or len(steps) == 0:
            errors.append(f"{label}: 'steps' must be a non-empty list")
            return errors

        for step_index, step_data in enumerate(steps):
            errors.extend(f"{label}, step {step_index}: {error}"
                          for error in self._validate_step(step_data))
        return errors

    def _validate_step(self, step_data: Any) -> List[str]:
        """Validate a single step."""
        if not isinstance(step_data, dict):
            return ["must be a mapping"]

        errors = []
        request = self._request_data(step_data)

        if not request.get("url"):
            errors.append("missing 'url'")

        method = str(request.get("method", "GET")).upper()
        if method not in HTTP_METHODS:
            errors.append(f"unsupported method '{method}'")

        for key in ("headers", "query"):
            if not isinstance(request.get(key, {}) or {}, dict):
                errors.append(f"'{key}' must be a mapping")

        if request.get("json") is not None and request.get("body") is not None:
            errors.append("'json' and 'body' are mutually exclusive")

        extract = step_data.get("extract", {}) or {}
        if not isinstance(extract, dict):
            errors.append("'extract' must be a mapping of name to source")
        else:
            for name, source in extract.items():
                try:
                    validate_source(source)
                except ValueError as e:
                    errors.append(f"extract '{name}': {e}")

        assertions = step_data.get("assert", []) or []
        if not isinstance(assertions, list):
            errors.append("'assert' must be a list")
        else:
            for assertion in assertions:
                try:
                    parsed = parse_assertion(assertion)
                    validate_source(parsed.source)
                    if parsed.op == AssertionOp.MATCHES:
                        compile_pattern(str(parsed.expected))
                except ValueError as e:
                    errors.append(str(e))

        expect_status = step_data.get("expect_status")
        if expect_status is not None and (isinstance(expect_status, bool) or not isinstance(expect_status, int)):
            errors.append("'expect_status' must be an integer")

        return errors

    def _request_data(self, step_data: Dict[str, Any]) -> Dict[str, Any]:
        """Request fields, from a nested 'request' mapping or inline."""
        request = step_data.get("request")
        if isinstance(request, dict):
            return request
        return step_data

    def _create_scenario(self, item: Dict[str, Any]) -> Scenario:
        """Create Scenario object from validated data."""
        steps = [self._create_step(step_data) for step_data in item["steps"]]

        scenario = Scenario(
            name=str(item["name"]),
            steps=tuple(steps),
            endpoint=item.get("endpoint"),
            variables=dict(item.get("variables") or {}),
            description=item.get("description", ""),
        )

        if not scenario.validate():
            raise ScenarioLoadError(f"Invalid scenario after creation: {scenario.name}")

        logger.debug(f"Loaded scenario: {scenario.name} with {len(scenario.steps)} steps")
        return scenario

    def _create_step(self, step_data: Dict[str, Any]) -> Step:
        request = self._request_data(step_data)
        method = str(request.get("method", "GET")).upper()
        url = str(request["url"])

        assertions: List[Assertion] = [parse_assertion(a) for a in step_data.get("assert") or []]

        return Step(
            name=step_data.get("name") or f"{method} {url}",
            url=url,
            method=method,
            headers=dict(request.get("headers") or {}),
            query=dict(request.get("query") or {}),
            json=request.get("json"),
            body=request.get("body"),
            extract={str(k): str(v) for k, v in (step_data.get("extract") or {}).items()},
            assertions=tuple(assertions),
            expect_status=step_data.get("expect_status"),
        )
