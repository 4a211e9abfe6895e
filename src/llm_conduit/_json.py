from __future__ import annotations

import json
import re
from typing import Any

from jsonschema import validate
from jsonschema.exceptions import ValidationError as _SchemaValidationError

from llm_conduit.errors import StructuredDecodingError

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


def parse_json(text: str) -> Any:
    """Parse JSON from a model response, tolerating a surrounding markdown fence."""
    match = _FENCE.match(text)
    candidate = match.group(1) if match else text
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise StructuredDecodingError(f"Failed to parse JSON: {e}", text, e) from e


def validate_json(instance: Any, schema: dict[str, Any], text: str = "") -> None:
    try:
        validate(instance=instance, schema=schema)
    except _SchemaValidationError as e:
        raise StructuredDecodingError(
            f"JSON schema validation failed: {e.message}", text, e
        ) from e
