"""JSON body schema inference.

Request and response bodies of an endpoint are parsed and merged into one
``JsonSchema`` that describes every property seen at every nesting level.
"""

from __future__ import annotations

from collections import defaultdict
import json
import logging
import re
from typing import Any

from apimap.formats.blueprint import JsonSchema, ParameterType

logger = logging.getLogger(__name__)


def _infer_type(value: Any) -> ParameterType:
    """Infer JSON schema type from a Python value."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def _detect_format(values: list[Any]) -> str | None:
    """Detect common string formats."""
    str_values = [v for v in values if isinstance(v, str)]
    if not str_values:
        return None

    if all(re.match(r"^\d{4}-\d{2}-\d{2}", v) for v in str_values):
        return "date-time" if any("T" in v for v in str_values) else "date"

    if all(re.match(r"^[^@]+@[^@]+\.[^@]+$", v) for v in str_values):
        return "email"

    if all(
        re.match(
            r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", v, re.I
        )
        for v in str_values
    ):
        return "uuid"

    if all(re.match(r"^https?://", v) for v in str_values):
        return "uri"

    return None


def parse_json_bodies(bodies: list[str]) -> list[Any]:
    """Parse the bodies that are valid JSON; the others are skipped."""
    parsed: list[Any] = []
    for body in bodies:
        try:
            parsed.append(json.loads(body))
        except (json.JSONDecodeError, ValueError):
            logger.debug("Skipping non-JSON body (%d chars)", len(body))
    return parsed


def infer_body_schema(bodies: list[str]) -> JsonSchema | None:
    """Infer a schema from raw body strings, or None when none of them is JSON."""
    samples = parse_json_bodies(bodies)
    if not samples:
        return None
    return infer_schema(samples)


def infer_schema(samples: list[Any]) -> JsonSchema:
    """Infer a JSON schema from parsed samples.

    Objects are merged key by key; a key is required when every object sample
    carries it.  Arrays get an ``items`` schema built from all their elements.
    Scalars carry the first observed value as ``example``.
    """
    non_null = [s for s in samples if s is not None]
    if not non_null:
        return JsonSchema(type="null")

    schema_type = _infer_type(non_null[0])
    if schema_type == "object":
        return _infer_object_schema([s for s in non_null if isinstance(s, dict)])
    if schema_type == "array":
        elements: list[Any] = []
        for s in non_null:
            if isinstance(s, list):
                elements.extend(s)
        return JsonSchema(type="array", items=infer_schema(elements) if elements else None)

    return JsonSchema(
        type=schema_type,
        format=_detect_format(non_null) if schema_type == "string" else None,
        example=non_null[0],
    )


def _infer_object_schema(samples: list[dict[str, Any]]) -> JsonSchema:
    """Infer schema for a list of object samples (recursive)."""
    all_keys: dict[str, list[Any]] = defaultdict(list)
    for sample in samples:
        for key, value in sample.items():
            all_keys[key].append(value)

    properties = {key: infer_schema(values) for key, values in all_keys.items()}
    required = [key for key in all_keys if all(key in s for s in samples)]
    return JsonSchema(type="object", properties=properties, required=required or None)
