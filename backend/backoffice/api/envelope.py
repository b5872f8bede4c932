from __future__ import annotations

from typing import Any

from starlette.datastructures import QueryParams

from backoffice.services.query_builder import ParamValue
from backoffice.services.record_controller import ListResult, UpdateResult


def ok(data: Any = None, *, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def page(result: ListResult) -> dict[str, Any]:
    return {"success": True, "data": result.items, "pagination": result.pagination()}


def updated(result: UpdateResult, entity: str) -> dict[str, Any]:
    if not result.changed:
        return ok(result.record, message="No changes detected")
    return ok(result.record, message=f"{entity} updated successfully")


def failure(message: str, **extra: Any) -> dict[str, Any]:
    return {"success": False, "error": message, **extra}


def query_params(params: QueryParams) -> dict[str, ParamValue]:
    """Flatten query parameters, keeping repeated keys as lists."""
    flattened: dict[str, ParamValue] = {}
    for key in params.keys():
        values = params.getlist(key)
        flattened[key] = values if len(values) > 1 else values[0]
    return flattened
