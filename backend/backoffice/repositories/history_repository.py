from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from backoffice.clients.leancloud import LeanCloudClient
from backoffice.repositories.record_repository import RecordRepository

HISTORY_CLASS = "History"
HISTORY_ACTIONS = ("created", "updated", "deleted", "status_updated")


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Any
    new_value: Any

    def to_payload(self) -> dict[str, Any]:
        return {"field": self.field, "oldValue": self.old_value, "newValue": self.new_value}


@dataclass(frozen=True)
class HistoryRecord:
    id: str
    entity_type: str
    entity_id: str
    action: str
    changed_by: str | None
    changes: list[FieldChange] = field(default_factory=list)
    created_at: str | None = None


def _from_lc(payload: dict[str, Any]) -> HistoryRecord:
    return HistoryRecord(
        id=payload.get("objectId", ""),
        entity_type=payload.get("entityType", ""),
        entity_id=payload.get("entityId", ""),
        action=payload.get("action", ""),
        changed_by=payload.get("changedBy"),
        changes=[
            FieldChange(
                field=item.get("field", ""),
                old_value=item.get("oldValue"),
                new_value=item.get("newValue"),
            )
            for item in payload.get("changes", [])
        ],
        created_at=payload.get("createdAt"),
    )


class HistoryRepository:
    def __init__(self, client: LeanCloudClient) -> None:
        self._records = RecordRepository(client, HISTORY_CLASS)

    async def create_entry(
        self,
        *,
        entity_type: str,
        entity_id: str,
        action: str,
        changed_by: str,
        changes: list[FieldChange],
    ) -> HistoryRecord:
        payload = {
            "entityType": entity_type,
            "entityId": entity_id,
            "action": action,
            "changedBy": changed_by,
            "changes": [change.to_payload() for change in changes],
        }
        record = await self._records.create(payload)
        return _from_lc(record)

    async def list_entries(
        self,
        *,
        entity_type: str,
        entity_id: str,
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[list[HistoryRecord], int]:
        page = await self._records.find(
            {"entityType": entity_type, "entityId": entity_id},
            order="-createdAt",
            skip=skip,
            limit=limit,
            count=True,
        )
        return [_from_lc(item) for item in page.items], page.total
