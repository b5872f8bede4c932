from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Mapping

from backoffice.repositories.record_repository import parse_date

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MISSING = object()


@dataclass(frozen=True)
class FieldRule:
    required: bool = False
    type: str | None = None
    enum: tuple[Any, ...] | None = None
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class ValidationRuleSet:
    create: Mapping[str, FieldRule] = field(default_factory=dict)
    update: Mapping[str, FieldRule] = field(default_factory=dict)


def get_path(data: Mapping[str, Any], path: str) -> Any:
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _type_error(path: str, kind: str, value: Any) -> str | None:
    if kind == "string" and not isinstance(value, str):
        return f"{path} must be a string"
    if kind == "email" and not (isinstance(value, str) and _EMAIL.match(value)):
        return f"{path} must be a valid email"
    if kind == "number" and _as_number(value) is None:
        return f"{path} must be a number"
    if kind == "boolean" and not isinstance(value, bool):
        return f"{path} must be a boolean"
    if kind == "array" and not isinstance(value, list):
        return f"{path} must be an array"
    if kind == "object" and not isinstance(value, Mapping):
        return f"{path} must be an object"
    if kind == "date" and parse_date(value) is None:
        return f"{path} must be a valid date"
    return None


def validate(data: Mapping[str, Any], rules: Mapping[str, FieldRule]) -> list[dict[str, str]]:
    """Check ``data`` against ``rules``; one entry per violated field."""
    errors: list[dict[str, str]] = []
    for path, rule in rules.items():
        value = get_path(data, path)
        if value is _MISSING or value is None or (isinstance(value, str) and not value.strip()):
            if rule.required:
                errors.append({"field": path, "message": f"{path} is required"})
            continue
        if rule.type:
            message = _type_error(path, rule.type, value)
            if message:
                errors.append({"field": path, "message": message})
                continue
        if rule.enum is not None and value not in rule.enum:
            allowed = ", ".join(str(item) for item in rule.enum)
            errors.append({"field": path, "message": f"{path} must be one of: {allowed}"})
            continue
        number = _as_number(value) if rule.min is not None or rule.max is not None else None
        if number is not None:
            if rule.min is not None and number < rule.min:
                errors.append({"field": path, "message": f"{path} must be at least {rule.min:g}"})
            elif rule.max is not None and number > rule.max:
                errors.append({"field": path, "message": f"{path} must be at most {rule.max:g}"})
    return errors
