from __future__ import annotations

import asyncio
from datetime import datetime, time, timezone
import logging
from typing import Any

from backoffice.clients.leancloud import LeanCloudClient
from backoffice.config import load_settings
from backoffice.repositories.record_repository import RecordRepository, lc_date
from backoffice.services.registry import ControllerRegistry, build_registry
from backoffice.services.stats_service import load_dashboard, snapshot_payload
from backoffice.telemetry.tracing import emit_metric

logger = logging.getLogger(__name__)

LOAD_STATS_CLASS = "LoadStats"


def _day_start(now: datetime) -> datetime:
    now = now if now.tzinfo else now.replace(tzinfo=timezone.utc)
    return datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)


async def recompute_daily_stats(
    registry: ControllerRegistry, now: datetime | None = None
) -> dict[str, Any] | None:
    """Store today's load snapshot; returns ``None`` when it already exists."""
    now = now or datetime.now(timezone.utc)
    day = _day_start(now)
    snapshots = RecordRepository(registry.client, LOAD_STATS_CLASS)
    existing = await snapshots.first({"date": lc_date(day)})
    if existing is not None:
        logger.info("Load stats for %s already exist, skipping", day.date().isoformat())
        return None

    dashboard = await load_dashboard(registry.loads, "day", now=now)
    payload = snapshot_payload(dashboard, day)
    created = await snapshots.create(payload)
    emit_metric(
        "stats.loads.daily_total",
        float(dashboard.total),
        "LoadStats",
        date=day.date().isoformat(),
    )
    logger.info("Stored load stats for %s: %d loads", day.date().isoformat(), dashboard.total)
    return created


async def main() -> None:
    settings = load_settings()
    client = LeanCloudClient(
        app_id=settings.lean_app_id,
        app_key=settings.lean_app_key,
        master_key=settings.lean_master_key,
        server_url=settings.lean_server_url,
    )
    try:
        await recompute_daily_stats(build_registry(client))
    finally:
        await client.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
