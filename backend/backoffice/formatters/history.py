from __future__ import annotations

from typing import Any

from backoffice.repositories.history_repository import HistoryRecord


def format_history(record: HistoryRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "entityType": record.entity_type,
        "entityId": record.entity_id,
        "action": record.action,
        "changedBy": record.changed_by,
        "changes": [change.to_payload() for change in record.changes],
        "createdAt": record.created_at,
    }
