"""
Decoding of completion-service output.

Two shapes arrive ambiguously and each has exactly one decoder here:
  - stage payloads: a bare JSON array or {"<stage key>": [...]}, possibly
    wrapped in markdown fences or surrounded by prose
  - slot mapping values: "Model.field", {"label"|"path": "..."}, {"url": "..."},
    or junk
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from content_mapper.errors import ExtractionParseError


STAGE_KEYS = ("components", "models", "mappings")

_JSON_FENCE = re.compile(r"```\s*json\s*\n?(.*?)```", re.IGNORECASE | re.DOTALL)
_ANY_FENCE = re.compile(r"```[a-zA-Z]*")
_INDEX_SUFFIX = re.compile(r"(\[[^\]]*\])+$")


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def _balanced_span(text: str, start: int) -> Optional[str]:
    """Return text[start:end] for the bracket group opening at start, string-aware."""
    opener = text[start]
    closer = "]" if opener == "[" else "}"
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "[{":
            depth += 1
        elif ch in "]}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1] if ch == closer else None
    return None


def _first_json_value(text: str) -> Optional[str]:
    starts = [i for i in (text.find("["), text.find("{")) if i >= 0]
    if not starts:
        return None
    return _balanced_span(text, min(starts))


def extract_json(raw: str) -> tuple[Any, str]:
    """
    Recover one JSON value from a model response.

    Order: a ```json fenced block, then (all fences stripped) the first
    balanced array or object. Returns (value, cleaned_text).
    """
    text = (raw or "").strip()
    candidates = []

    fenced = _JSON_FENCE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())

    unfenced = _ANY_FENCE.sub("", text).strip()
    span = _first_json_value(unfenced)
    if span is not None:
        candidates.append(span)

    last_error = "no JSON array or object found"
    for candidate in candidates:
        try:
            return json.loads(candidate), candidate
        except json.JSONDecodeError as e:
            last_error = str(e)

    cleaned = candidates[-1] if candidates else unfenced
    raise ExtractionParseError("response", last_error, raw=raw or "", cleaned=cleaned)


def parse_stage_response(raw: str, stage_key: str) -> list:
    """Parse a single-purpose stage response: `[...]` or `{stage_key: [...]}`."""
    if stage_key not in STAGE_KEYS:
        raise ValueError(f"unknown stage key: {stage_key}")
    try:
        value, cleaned = extract_json(raw)
    except ExtractionParseError as e:
        raise ExtractionParseError(stage_key, e.reason, raw=e.raw, cleaned=e.cleaned) from e

    if isinstance(value, list):
        return value
    if isinstance(value, dict) and isinstance(value.get(stage_key), list):
        return value[stage_key]
    raise ExtractionParseError(
        stage_key,
        f"Expected a JSON array or an object with a '{stage_key}' array, got {type(value).__name__}",
        raw=raw,
        cleaned=cleaned,
    )


def parse_combined_response(raw: str) -> tuple[list, list]:
    """Parse the two-in-one detection response: `{"components": [...], "models": [...]}`."""
    try:
        value, cleaned = extract_json(raw)
    except ExtractionParseError as e:
        raise ExtractionParseError("components and models", e.reason,
                                   raw=e.raw, cleaned=e.cleaned) from e

    if (
        isinstance(value, dict)
        and isinstance(value.get("components"), list)
        and isinstance(value.get("models"), list)
    ):
        return value["components"], value["models"]
    raise ExtractionParseError(
        "components and models",
        "Expected an object with 'components' and 'models' arrays",
        raw=raw,
        cleaned=cleaned,
    )


# ---------------------------------------------------------------------------
# Slot mapping values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldPath:
    """Resolvable reference, nominally "ModelName.fieldName" with optional [..] suffix."""
    path: str


@dataclass(frozen=True)
class DisplayValue:
    """A literal URL shown as-is; never bound to a collection field."""
    url: str


@dataclass(frozen=True)
class InvalidValue:
    raw: Any


MappingValue = Union[FieldPath, DisplayValue, InvalidValue]


def normalize_mapping_value(raw: Any) -> MappingValue:
    if isinstance(raw, str):
        return FieldPath(raw.strip()) if raw.strip() else InvalidValue(raw)
    if isinstance(raw, dict):
        for key in ("label", "path"):
            if isinstance(raw.get(key), str) and raw[key].strip():
                return FieldPath(raw[key].strip())
        if isinstance(raw.get("url"), str):
            return DisplayValue(raw["url"])
    return InvalidValue(raw)


def split_field_path(path: str) -> Optional[tuple[str, str]]:
    """
    "Event.speakers[]" -> ("Event", "speakers"). Splits on the first dot and
    strips a trailing index suffix. None when there is no field part.
    """
    model_name, dot, rest = path.partition(".")
    if not dot:
        return None
    field_name = _INDEX_SUFFIX.sub("", rest)
    if not model_name or not field_name:
        return None
    return model_name, field_name
