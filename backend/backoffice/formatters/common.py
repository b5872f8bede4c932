from __future__ import annotations

from typing import Any, Callable

Record = dict[str, Any]


def record_id(record: Record | None) -> str | None:
    if not record:
        return None
    return record.get("objectId") or record.get("id")


def date_value(value: Any) -> str | None:
    if isinstance(value, dict) and value.get("__type") == "Date":
        return value.get("iso")
    return value if isinstance(value, str) and value else None


def as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def count(value: Any) -> int:
    return len(value) if isinstance(value, list) else 0


def is_expanded(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return value.get("__type") != "Pointer" and bool(set(value) - {"__type", "className", "objectId", "id"})


def reference(value: Any, shape: Callable[[Record], Record]) -> Record | None:
    """Shape a joined reference, or ``{"id": ...}`` when it was not expanded."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return {"id": value}
    if is_expanded(value):
        return shape(value)
    if isinstance(value, dict):
        return {"id": record_id(value)}
    return None


def reference_id(value: Any) -> str | None:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return record_id(value)
    return None


def address(value: Any) -> Record | None:
    """Address with both the structured ``zipCode`` and the legacy numeric ``zip``."""
    if not isinstance(value, dict):
        return None
    zip_code = value.get("zipCode")
    legacy_zip = value.get("zip")
    if zip_code in (None, "") and legacy_zip is not None:
        zip_code = str(legacy_zip)
    if legacy_zip is None and isinstance(zip_code, str) and zip_code.strip().isdigit():
        legacy_zip = int(zip_code.strip())
    return {
        "address": value.get("address"),
        "city": value.get("city"),
        "state": value.get("state"),
        "zipCode": zip_code,
        "zip": legacy_zip,
        "name": value.get("name"),
        "contactPhone": value.get("contactPhone"),
        "loc": value.get("loc"),
    }


def timestamps(record: Record) -> Record:
    return {
        "createdBy": reference_id(record.get("createdBy")),
        "updatedBy": reference_id(record.get("updatedBy")),
        "createdAt": date_value(record.get("createdAt")),
        "updatedAt": date_value(record.get("updatedAt")),
    }
