"""Structured-output helpers: JSON extraction and schema validation.

A *schema* is either a pydantic model class or a JSON-Schema ``dict``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from pydantic import BaseModel, ValidationError

_logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def _extract_balanced(text: str, start: int) -> str | None:
    """Extract a balanced JSON object/array starting at *start*.

    Handles nested brackets and quoted strings so that
    ``{"args": {"k": "v"}}`` is captured in full.
    """
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def extract_json(text: str) -> Any | None:
    """Pull the first JSON value out of free-form model output.

    Tries, in order: the whole text, fenced code blocks, then the first
    balanced ``{...}`` or ``[...]``. Returns ``None`` if nothing parses.
    """
    stripped = text.strip()
    if not stripped:
        return None
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    for block in _FENCE_PATTERN.findall(text):
        try:
            return json.loads(block.strip())
        except json.JSONDecodeError:
            continue

    for match in re.finditer(r"[\[{]", text):
        candidate = _extract_balanced(text, match.start())
        if candidate is None:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


# ---------------------------------------------------------------------------
# Schema handling
# ---------------------------------------------------------------------------

def is_model_schema(schema: Any) -> bool:
    return isinstance(schema, type) and issubclass(schema, BaseModel)


def to_json_schema(schema: Any) -> dict[str, Any]:
    """Return the JSON-Schema form of *schema*."""
    if is_model_schema(schema):
        return schema.model_json_schema()
    if isinstance(schema, dict):
        return schema
    raise TypeError(f"Unsupported schema type: {type(schema).__name__}")


def schema_name(schema: Any) -> str:
    if is_model_schema(schema):
        return schema.__name__
    if isinstance(schema, dict) and isinstance(schema.get("title"), str):
        return re.sub(r"[^a-zA-Z0-9_-]", "_", schema["title"])
    return "response_schema"


def validate_against_schema(value: Any, schema: Any) -> tuple[bool, list[str], Any]:
    """Validate *value*.

    Returns ``(valid, errors, parsed)`` where *parsed* is a model instance
    for pydantic schemas and the value itself for JSON-Schema dicts.
    """
    if is_model_schema(schema):
        try:
            return True, [], schema.model_validate(value)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            return False, errors, None

    if isinstance(schema, dict):
        try:
            cls = validator_for(schema, default=Draft7Validator)
            cls.check_schema(schema)
        except SchemaError as e:
            return False, [f"Invalid JSON Schema: {e.message}"], None
        validator = cls(schema)
        errors = []
        for err in validator.iter_errors(value):
            path = ".".join(str(p) for p in err.absolute_path)
            errors.append(f"{path}: {err.message}" if path else err.message)
        if errors:
            return False, errors, None
        return True, [], value

    return False, ["Invalid schema"], None


def schema_instruction(schema: Any) -> str:
    """Prompt text asking the model to answer with JSON matching *schema*."""
    schema_json = json.dumps(to_json_schema(schema), indent=2)
    kind = "array" if to_json_schema(schema).get("type") == "array" else "object"
    return (
        f"You must return a valid JSON {kind} that follows this exact schema:\n"
        f"```json\n{schema_json}\n```\n"
        "The schema is not an example; it describes the required structure "
        "and property types. Don't include any text outside the JSON."
    )
