from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Sequence

from backoffice.repositories.history_repository import (
    FieldChange,
    HistoryRecord,
    HistoryRepository,
)

logger = logging.getLogger(__name__)

RECORDED = "recorded"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class AuditResult:
    status: str
    record: HistoryRecord | None = None
    reason: str | None = None

    @property
    def recorded(self) -> bool:
        return self.status == RECORDED


class HistoryRecorder:
    """Best-effort audit trail for one entity type.

    ``record`` reports what happened through :class:`AuditResult` and never
    raises; callers log the result and carry on with the primary operation.
    """

    def __init__(self, repo: HistoryRepository, entity_type: str) -> None:
        self.repo = repo
        self.entity_type = entity_type

    async def record(
        self,
        entity_id: str,
        action: str,
        actor_id: str | None,
        changes: Sequence[FieldChange] = (),
    ) -> AuditResult:
        if not actor_id:
            logger.warning(
                "Skipping %s history for %s %s: no actor", action, self.entity_type, entity_id
            )
            return AuditResult(SKIPPED, reason="missing actor")

        if action in {"created", "deleted"}:
            changes = []
        elif not changes:
            return AuditResult(SKIPPED, reason="no changes")

        try:
            record = await self.repo.create_entry(
                entity_type=self.entity_type,
                entity_id=entity_id,
                action=action,
                changed_by=actor_id,
                changes=list(changes),
            )
        except Exception as exc:
            logger.error(
                "Failed to write %s history for %s %s: %s",
                action,
                self.entity_type,
                entity_id,
                exc,
            )
            return AuditResult(FAILED, reason=str(exc))
        return AuditResult(RECORDED, record=record)

    async def list_for(
        self, entity_id: str, *, page: int = 1, limit: int = 10
    ) -> tuple[list[HistoryRecord], int]:
        return await self.repo.list_entries(
            entity_type=self.entity_type,
            entity_id=entity_id,
            skip=(page - 1) * limit,
            limit=limit,
        )
