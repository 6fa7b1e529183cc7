"""Validation of NORMAL-event form answers against the event's form schema.

Returns the stored response list, ordered by field `order`. Any problem is a
ValidationError naming the offending field.
"""

import math
from typing import Any

from campusgate.core.errors import ErrorCode, ValidationError


def _fail(message: str, key: str) -> ValidationError:
    return ValidationError(message, code=ErrorCode.INVALID_FORM_ANSWER, field=key)


def _is_missing(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def _coerce_number(raw: Any, key: str) -> float:
    if isinstance(raw, bool):
        raise _fail(f"Field {key} must be a valid number", key)
    if isinstance(raw, (int, float)):
        value = raw
    elif isinstance(raw, str):
        try:
            value = float(raw)
        except ValueError:
            raise _fail(f"Field {key} must be a valid number", key) from None
    else:
        raise _fail(f"Field {key} must be a valid number", key)
    if not math.isfinite(value):
        raise _fail(f"Field {key} must be a valid number", key)
    return value


def _coerce_choices(raw: Any, key: str) -> list[str]:
    if isinstance(raw, list):
        return [str(item).strip() for item in raw if str(item).strip()]
    if isinstance(raw, str):
        return [item.strip() for item in raw.split(",") if item.strip()]
    raise _fail(f"Field {key} must be a string or string[]", key)


def validate_answers(form_schema: dict, answers: dict[str, Any]) -> list[dict]:
    fields = sorted(form_schema.get("fields", []), key=lambda field: field["order"])
    by_key = {field["key"]: field for field in fields}

    for key in answers:
        if key not in by_key:
            raise _fail(f"Unknown form field: {key}", key)

    responses = []
    for field in fields:
        key, kind = field["key"], field["type"]
        raw = answers.get(key)
        entry = {"key": key, "label": field["label"], "type": kind}

        if _is_missing(raw):
            if field.get("required"):
                raise _fail(f"Missing required value for field {key}", key)
            continue

        if kind in ("text", "textarea", "select", "file"):
            if not isinstance(raw, str):
                raise _fail(f"Field {key} must be a string", key)
            value = raw.strip()
            if kind == "select" and value not in (field.get("options") or []):
                raise _fail(f"Invalid option for field {key}", key)
            entry["value"] = value
        elif kind == "number":
            entry["value"] = _coerce_number(raw, key)
        elif kind == "checkbox":
            selected = _coerce_choices(raw, key)
            if not selected:
                if field.get("required"):
                    raise _fail(f"Missing required value for field {key}", key)
                continue
            options = field.get("options") or []
            if any(item not in options for item in selected):
                raise _fail(f"Invalid option for field {key}", key)
            entry["value"] = selected

        responses.append(entry)

    return responses
