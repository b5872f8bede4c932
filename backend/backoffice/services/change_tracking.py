from __future__ import annotations

from datetime import datetime
import json
from typing import Any, Mapping

from backoffice.repositories.history_repository import FieldChange
from backoffice.repositories.record_repository import parse_date

IGNORED_FIELDS = frozenset({"objectId", "id", "createdAt", "updatedAt", "__v", "ACL"})


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        kind = value.get("__type")
        if kind == "Date":
            return parse_date(value)
        if kind == "Pointer" or (kind == "Object" and "objectId" in value):
            return value.get("objectId")
    return value


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def values_differ(old: Any, new: Any) -> bool:
    old = _normalize(old)
    new = _normalize(new)

    if old is None and new is None:
        return False
    if old is None or new is None:
        return True

    if isinstance(old, datetime) and isinstance(new, str):
        new = parse_date(new) or new
    elif isinstance(new, datetime) and isinstance(old, str):
        old = parse_date(old) or old

    if isinstance(old, str) and isinstance(new, str):
        return old.strip() != new.strip()
    if isinstance(old, (dict, list)) and isinstance(new, (dict, list)):
        return _canonical(old) != _canonical(new)
    if isinstance(old, bool) != isinstance(new, bool):
        return True
    if type(old) is not type(new) and not (
        isinstance(old, (int, float)) and isinstance(new, (int, float))
    ):
        return True
    return old != new


def diff_fields(existing: Mapping[str, Any], proposed: Mapping[str, Any]) -> list[FieldChange]:
    """Field-level changes ``proposed`` would make to ``existing``, in body order."""
    changes = []
    for name, new_value in proposed.items():
        if name in IGNORED_FIELDS:
            continue
        old_value = existing.get(name)
        if values_differ(old_value, new_value):
            changes.append(FieldChange(field=name, old_value=old_value, new_value=new_value))
    return changes


def changed_fields(existing: Mapping[str, Any], proposed: Mapping[str, Any]) -> dict[str, Any]:
    return {change.field: change.new_value for change in diff_fields(existing, proposed)}
