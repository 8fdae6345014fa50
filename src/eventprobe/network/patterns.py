from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TypeAlias

from pydantic import JsonValue, TypeAdapter, ValidationError

from .errors import MalformedPatternError

PatternSource: TypeAlias = str | os.PathLike[str] | Mapping[str, Any]

_PATTERN_ADAPTER: TypeAdapter[dict[str, JsonValue]] = TypeAdapter(dict[str, JsonValue])


def _validated_mapping(source: Mapping[str, Any]) -> dict[str, Any]:
    try:
        return _PATTERN_ADAPTER.validate_python(dict(source))
    except ValidationError as err:
        raise MalformedPatternError(f"Pattern mapping must contain only JSON values: {err}") from err
    except RecursionError as err:
        raise MalformedPatternError("Pattern mapping is nested too deeply") from err


def load_pattern(source: PatternSource | None) -> dict[str, Any] | None:
    """
    Normalize a pattern given as JSON text, a JSON file path or a mapping.

    Files are read verbatim as UTF-8 JSON. Mappings are validated to hold JSON values
    only (str keys; dict, list, str, int, float, bool or None values).
    A None source means "match by name only".

    Raises:
        MalformedPatternError: if the input is not valid JSON or does not decode to an object.
    """
    if source is None:
        return None
    if isinstance(source, Mapping):
        return _validated_mapping(source)

    if isinstance(source, os.PathLike):
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as err:
            raise MalformedPatternError(f"Cannot read pattern file '{path}': {err}") from err
        origin = f"file '{path}'"
    else:
        text = source
        origin = "string"

    try:
        parsed = json.loads(text)
    except ValueError as err:
        raise MalformedPatternError(f"Pattern {origin} is not valid JSON: {err}") from err
    except RecursionError as err:
        raise MalformedPatternError(f"Pattern {origin} is nested too deeply") from err
    if not isinstance(parsed, dict):
        raise MalformedPatternError(
            f"Pattern {origin} must be a JSON object with key/value pairs, "
            f"got {type(parsed).__name__}"
        )
    return parsed
