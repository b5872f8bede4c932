from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import re
from typing import Any

from backoffice.clients.leancloud import API_PREFIX, LeanCloudClient, LeanCloudError

MAX_LIMIT = 1000
_OBJECT_ID = re.compile(r"^[0-9a-f]{24}$")


@dataclass(frozen=True)
class Page:
    items: list[dict[str, Any]]
    total: int


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_OBJECT_ID.match(value))


def lc_date(value: datetime) -> dict[str, str]:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    iso = value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
    return {"__type": "Date", "iso": iso}


def parse_date(value: Any) -> datetime | None:
    """Read a store date, an ISO string or a bare ``YYYY-MM-DD`` day."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, dict) and value.get("__type") == "Date":
        value = value.get("iso")
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def pointer(class_name: str, object_id: str) -> dict[str, str]:
    return {"__type": "Pointer", "className": class_name, "objectId": object_id}


def ref_id(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("objectId") or value.get("id")
    return value if isinstance(value, str) else None


class RecordRepository:
    """Objects of one store class, addressed by ``objectId``."""

    def __init__(self, client: LeanCloudClient, class_name: str) -> None:
        self._client = client
        self.class_name = class_name

    @property
    def _path(self) -> str:
        return f"{API_PREFIX}/classes/{self.class_name}"

    def object_path(self, object_id: str) -> str:
        return f"{self._path}/{object_id}"

    async def find(
        self,
        where: dict[str, Any] | None = None,
        *,
        order: str | None = None,
        skip: int = 0,
        limit: int = 100,
        include: list[str] | None = None,
        count: bool = False,
    ) -> Page:
        params: dict[str, Any] = {"limit": min(max(limit, 0), MAX_LIMIT)}
        if where:
            params["where"] = json.dumps(where)
        if order:
            params["order"] = order
        if skip:
            params["skip"] = skip
        if include:
            params["include"] = ",".join(include)
        if count:
            params["count"] = 1
        response = await self._client.get_json(self._path, params=params)
        items = response.get("results", [])
        total = response.get("count", len(items)) if count else len(items)
        return Page(items=items, total=total)

    async def first(
        self, where: dict[str, Any], *, order: str | None = None
    ) -> dict[str, Any] | None:
        page = await self.find(where, order=order, limit=1)
        return page.items[0] if page.items else None

    async def count(self, where: dict[str, Any] | None = None) -> int:
        page = await self.find(where, limit=0, count=True)
        return page.total

    async def get(
        self, object_id: str, *, include: list[str] | None = None
    ) -> dict[str, Any] | None:
        params = {"include": ",".join(include)} if include else None
        try:
            record = await self._client.get_json(self.object_path(object_id), params=params)
        except LeanCloudError as exc:
            if exc.is_not_found:
                return None
            raise
        return record or None

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post_json(self._path, data)
        return {**data, **response, "updatedAt": response.get("createdAt")}

    async def update(self, object_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._client.put_json(self.object_path(object_id), data)

    async def delete(self, object_id: str) -> None:
        await self._client.delete_json(self.object_path(object_id))

    async def add_unique(self, object_id: str, field: str, values: list[Any]) -> None:
        await self.update(object_id, {field: {"__op": "AddUnique", "objects": values}})

    async def remove_values(self, object_id: str, field: str, values: list[Any]) -> None:
        await self.update(object_id, {field: {"__op": "Remove", "objects": values}})

    async def batch_update(self, object_ids: list[str], data: dict[str, Any]) -> int:
        requests = [
            {"method": "PUT", "path": self.object_path(object_id), "body": data}
            for object_id in object_ids
        ]
        results = await self._client.batch(requests)
        return sum(1 for item in results if "success" in item)

    async def batch_delete(self, object_ids: list[str]) -> int:
        requests = [
            {"method": "DELETE", "path": self.object_path(object_id)}
            for object_id in object_ids
        ]
        results = await self._client.batch(requests)
        return sum(1 for item in results if "success" in item)
