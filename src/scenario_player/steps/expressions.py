# src/scenario_player/steps/expressions.py
"""Variable templating, value extraction and assertion checks."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Pattern, Union
import logging

from ..scenarios.models import Assertion, AssertionOp

logger = logging.getLogger(__name__)

# Sentinel for "not found", distinct from a legitimate None value
MISSING = object()

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w.\-]+)\s*\}\}")
SHORTHAND_PATTERN = re.compile(r"^\s*(\S+)\s+(==|!=|<=|>=|<|>|contains|matches)\s+(.+?)\s*$")

SOURCE_KINDS = ("status_code", "body", "header", "json", "regex")


class UndefinedVariable(KeyError):
    """Raised when a template refers to a variable that is not defined."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)


class ResponseDecodeError(ValueError):
    """Raised when a response body cannot be decoded as JSON."""
    pass


@dataclass
class ResponseData:
    """Decoded view of one HTTP response."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    _json: Any = field(default=MISSING, repr=False)

    def header(self, name: str) -> Any:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), MISSING)

    @property
    def json(self) -> Any:
        """Body parsed as JSON, decoded once on first access."""
        if self._json is MISSING:
            try:
                self._json = json.loads(self.text)
            except ValueError as e:
                raise ResponseDecodeError(f"Response body is not valid JSON: {e}") from e
        return self._json


def render(template: Any, values: Mapping[str, Any]) -> Any:
    """Substitute ``{{ name }}`` placeholders from the value store.

    A string made of a single placeholder is replaced by the raw value, so
    numbers and structures keep their type inside JSON bodies.
    """
    if isinstance(template, str):
        whole = PLACEHOLDER_PATTERN.fullmatch(template.strip())
        if whole:
            return _resolve(whole.group(1), values)
        return PLACEHOLDER_PATTERN.sub(lambda m: str(_resolve(m.group(1), values)), template)

    if isinstance(template, dict):
        return {render(key, values): render(value, values) for key, value in template.items()}

    if isinstance(template, (list, tuple)):
        return [render(item, values) for item in template]

    return template


def _resolve(name: str, values: Mapping[str, Any]) -> Any:
    if name in values:
        return values[name]

    value = lookup_path(values, name)
    if value is MISSING:
        raise UndefinedVariable(name)
    return value


def lookup_path(data: Any, path: str) -> Any:
    """Walk a dotted path (``a.b.0.c`` or ``a.b[0].c``) through dicts and lists."""
    normalized = re.sub(r"\[(\d+)\]", r".\1", path).strip(".")
    current = data

    for part in normalized.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return MISSING
        else:
            return MISSING

    return current


def compile_pattern(pattern: str) -> Pattern[str]:
    """Compile a regular expression, reporting a bad pattern as ValueError."""
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid regular expression {pattern!r}: {e}") from e


def validate_source(source: str) -> None:
    """Raise ValueError if `source` is not a usable extraction source."""
    kind, _, argument = str(source).partition(":")
    kind = kind.strip().lower()
    if kind not in SOURCE_KINDS:
        raise ValueError(f"Unknown extraction source: {source}")
    if kind == "regex":
        compile_pattern(argument)


def extract(source: str, response: ResponseData) -> Any:
    """
    Read a value out of a response.

    Sources:
        status_code          HTTP status
        body                 raw body text
        header:<Name>        response header
        json                 whole JSON document
        json:<path>          value at a dotted path in the JSON body
        regex:<pattern>      first group (or whole match) in the body text

    Returns:
        The value, or MISSING if the source does not resolve.

    Raises:
        ResponseDecodeError: if a json source is used on a non-JSON body
        ValueError: for an unknown source or an invalid regex pattern
    """
    kind, _, argument = source.partition(":")
    kind = kind.strip().lower()

    if kind == "status_code":
        return response.status
    if kind == "body":
        return response.text
    if kind == "header":
        return response.header(argument.strip())
    if kind == "json":
        document = response.json
        return lookup_path(document, argument.strip()) if argument.strip() else document
    if kind == "regex":
        match = compile_pattern(argument).search(response.text)
        if not match:
            return MISSING
        return match.group(1) if match.groups() else match.group(0)

    raise ValueError(f"Unknown extraction source: {source}")


def parse_assertion(definition: Union[str, Mapping[str, Any]]) -> Assertion:
    """Build an Assertion from ``"<source> <op> <value>"`` or a mapping."""
    if isinstance(definition, Mapping):
        if "source" not in definition:
            raise ValueError(f"Assertion is missing 'source': {dict(definition)}")
        op = AssertionOp(definition.get("op", "exists" if "value" not in definition else "=="))
        return Assertion(source=str(definition["source"]), op=op, expected=definition.get("value"))

    if not isinstance(definition, str):
        raise ValueError(f"Assertion must be a string or mapping: {definition!r}")

    text = definition.strip()
    if text.endswith(" exists"):
        return Assertion(source=text[:-len(" exists")].strip(), op=AssertionOp.EXISTS)

    match = SHORTHAND_PATTERN.match(text)
    if not match:
        raise ValueError(f"Cannot parse assertion: {definition!r}")

    source, op, raw_expected = match.groups()
    return Assertion(source=source, op=AssertionOp(op), expected=_parse_literal(raw_expected))


def _parse_literal(raw: str) -> Any:
    """Interpret a shorthand operand as JSON, falling back to a bare string."""
    try:
        return json.loads(raw)
    except ValueError:
        if len(raw) >= 2 and raw[0] == raw[-1] == "'":
            return raw[1:-1]
        return raw


def check(assertion: Assertion, response: ResponseData) -> Optional[str]:
    """Apply an assertion. Returns None when it holds, otherwise the reason."""
    actual = extract(assertion.source, response)
    op = assertion.op
    expected = assertion.expected

    if op == AssertionOp.EXISTS:
        return None if actual is not MISSING else f"Expected {assertion.source} to exist"

    if actual is MISSING:
        return f"{assertion.describe()} failed: {assertion.source} not found"

    if op == AssertionOp.EQUALS:
        held = _loose_equals(actual, expected)
    elif op == AssertionOp.NOT_EQUALS:
        held = not _loose_equals(actual, expected)
    elif op == AssertionOp.CONTAINS:
        held = _contains(actual, expected)
    elif op == AssertionOp.MATCHES:
        held = compile_pattern(str(expected)).search(str(actual)) is not None
    else:
        try:
            held = _compare(op, float(actual), float(expected))
        except (TypeError, ValueError):
            return f"{assertion.describe()} failed: {actual!r} is not comparable"

    if held:
        return None
    return f"{assertion.describe()} failed: got {actual!r}"


def _loose_equals(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    # Headers and regex captures are strings; let "200" match 200
    if isinstance(actual, str) != isinstance(expected, str):
        return str(actual) == str(expected)
    return False


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return str(expected) in actual
    if isinstance(actual, (list, tuple, dict)):
        return expected in actual
    return False


def _compare(op: AssertionOp, actual: float, expected: float) -> bool:
    if op == AssertionOp.LESS_THAN:
        return actual < expected
    if op == AssertionOp.GREATER_THAN:
        return actual > expected
    if op == AssertionOp.LESS_EQUAL:
        return actual <= expected
    return actual >= expected
