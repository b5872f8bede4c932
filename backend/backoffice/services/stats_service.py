from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Any, AsyncIterator

from backoffice.repositories.record_repository import MAX_LIMIT, lc_date, ref_id
from backoffice.services.record_controller import RecordController, resolve_window

logger = logging.getLogger(__name__)

TOP_LIMIT = 5


@dataclass
class LoadDashboard:
    period: str
    date_range: dict[str, str] | None
    total: int = 0
    revenue: float = 0.0
    by_status: Counter = field(default_factory=Counter)
    carriers: Counter = field(default_factory=Counter)
    customers: Counter = field(default_factory=Counter)
    names: dict[str, str] = field(default_factory=dict)

    def top(self, counter: Counter) -> list[dict[str, Any]]:
        return [
            {"id": key, "name": self.names.get(key), "count": count}
            for key, count in counter.most_common(TOP_LIMIT)
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "dateRange": self.date_range,
            "total": self.total,
            "byStatus": dict(self.by_status),
            "revenue": round(self.revenue, 2),
            "topCarriers": self.top(self.carriers),
            "topCustomers": self.top(self.customers),
        }


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


async def _iter_loads(loads: RecordController, where: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
    skip = 0
    while True:
        with loads.store_errors("fetch"):
            page = await loads.repo.find(
                where,
                order="createdAt",
                skip=skip,
                limit=MAX_LIMIT,
                include=list(loads.config.populate),
            )
        for item in page.items:
            yield item
        if len(page.items) < MAX_LIMIT:
            return
        skip += MAX_LIMIT


async def load_dashboard(
    loads: RecordController,
    period: str = "month",
    start_date: str | None = None,
    end_date: str | None = None,
    *,
    now: datetime | None = None,
) -> LoadDashboard:
    window = resolve_window(period, start_date, end_date, now=now)
    where: dict[str, Any] = {}
    date_range = None
    if window is not None:
        date_range = {"start": lc_date(window[0])["iso"], "end": lc_date(window[1])["iso"]}
        where["createdAt"] = {"$gte": lc_date(window[0]), "$lte": lc_date(window[1])}

    dashboard = LoadDashboard(period=period, date_range=date_range)
    async for load in _iter_loads(loads, where):
        dashboard.total += 1
        dashboard.revenue += _number(load.get("value"))
        if load.get("status"):
            dashboard.by_status[load["status"]] += 1
        for name, counter, label in (
            ("carrier", dashboard.carriers, "name"),
            ("customer", dashboard.customers, "companyName"),
        ):
            party = load.get(name)
            party_id = ref_id(party)
            if not party_id:
                continue
            counter[party_id] += 1
            if isinstance(party, dict) and party.get(label):
                dashboard.names[party_id] = party[label]
    logger.debug("Load dashboard for %s covers %d loads", period, dashboard.total)
    return dashboard


def snapshot_payload(dashboard: LoadDashboard, day: datetime) -> dict[str, Any]:
    """Store shape of one daily ``LoadStats`` snapshot."""
    return {
        "date": lc_date(day),
        "totalLoads": dashboard.total,
        "totalRevenue": round(dashboard.revenue, 2),
        "byStatus": {
            status.replace(" ", "").lower(): count for status, count in dashboard.by_status.items()
        },
        "topCarriers": dashboard.top(dashboard.carriers),
        "topCustomers": dashboard.top(dashboard.customers),
    }
