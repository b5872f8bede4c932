from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger("backoffice.telemetry")


def _emit(payload: dict[str, Any]) -> dict[str, Any]:
    logger.info(json.dumps(payload, sort_keys=True, default=str))
    return payload


def emit_event(
    name: str,
    entity: str,
    record_id: str | None = None,
    *,
    actor_id: str | None = None,
    **attributes: Any,
) -> dict[str, Any]:
    """Log one JSON line describing a change to ``entity`` records."""
    payload: dict[str, Any] = {
        "type": "event",
        "name": name,
        "entity": entity,
        "actorId": actor_id,
        "attributes": attributes,
    }
    if record_id:
        payload["recordId"] = record_id
    return _emit(payload)


def emit_metric(name: str, value: float, entity: str, **attributes: Any) -> dict[str, Any]:
    return _emit(
        {
            "type": "metric",
            "name": name,
            "value": value,
            "entity": entity,
            "attributes": attributes,
        }
    )
