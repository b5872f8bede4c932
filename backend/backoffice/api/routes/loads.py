from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from backoffice.api.deps.actor import Actor, actor_id, get_actor, require_roles
from backoffice.api.deps.services import get_registry
from backoffice.api.envelope import page, query_params, updated
from backoffice.api.routes.records import build_record_router
from backoffice.errors import ValidationFailed
from backoffice.models.requests import LoadStatusUpdate
from backoffice.services.entities.loads import (
    create_load,
    load_history,
    loads_by_status,
    update_load,
    update_load_status,
)
from backoffice.services.registry import ControllerRegistry

DISPATCH_ROLES = ("admin", "dispatcher")

load_router = APIRouter(prefix="/loads", tags=["loads"])

DispatchAuth = Depends(require_roles(*DISPATCH_ROLES))


@load_router.get("/status/{load_status}")
async def list_loads_by_status(
    load_status: str,
    request: Request,
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = Depends(get_actor),
):
    result = await loads_by_status(registry, load_status, query_params(request.query_params))
    return page(result)


@load_router.put("/{load_id}/status")
async def change_load_status(
    load_id: str,
    payload: LoadStatusUpdate,
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = DispatchAuth,
):
    if not payload.status:
        raise ValidationFailed([{"field": "status", "message": "status is required"}])
    result = await update_load_status(registry, load_id, payload.status, actor_id(actor))
    return updated(result, "Load status")


@load_router.get("/{load_id}/history")
async def get_load_history(
    load_id: str,
    page_number: int = Query(1, ge=1, alias="page"),
    limit: int = Query(10, ge=1, le=100),
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = Depends(get_actor),
):
    result = await load_history(registry, load_id, page=page_number, limit=limit)
    return page(result)


router = APIRouter()
router.include_router(load_router)
router.include_router(
    build_record_router(
        "loads",
        "/loads",
        label="Load",
        create=create_load,
        update=update_load,
        write_roles=DISPATCH_ROLES,
        delete_roles=("admin",),
    )
)

