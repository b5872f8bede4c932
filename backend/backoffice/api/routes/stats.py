from __future__ import annotations

from fastapi import APIRouter, Depends

from backoffice.api.deps.actor import Actor, get_actor
from backoffice.api.deps.services import get_registry
from backoffice.api.envelope import ok
from backoffice.services.registry import ControllerRegistry
from backoffice.services.stats_service import load_dashboard

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/loads")
async def load_statistics(
    period: str = "month",
    startDate: str | None = None,
    endDate: str | None = None,
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = Depends(get_actor),
):
    dashboard = await load_dashboard(registry.loads, period, startDate, endDate)
    return ok(dashboard.to_dict())
