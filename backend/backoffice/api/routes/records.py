from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Request, status

from backoffice.api.deps.actor import Actor, actor_id, get_actor, require_roles
from backoffice.api.deps.services import get_registry
from backoffice.api.envelope import ok, page, query_params, updated
from backoffice.models.requests import BulkDeleteRequest, BulkUpdateRequest
from backoffice.services.record_controller import UpdateResult
from backoffice.services.registry import ControllerRegistry

CreateHandler = Callable[[ControllerRegistry, dict[str, Any], Optional[str]], Awaitable[dict[str, Any]]]
UpdateHandler = Callable[
    [ControllerRegistry, str, dict[str, Any], Optional[str]], Awaitable[UpdateResult]
]


def _guard(roles: tuple[str, ...] | None) -> Callable[..., Actor | None]:
    return require_roles(*roles) if roles else get_actor


def build_record_router(
    name: str,
    prefix: str,
    *,
    label: str,
    create: CreateHandler | None = None,
    update: UpdateHandler | None = None,
    read_roles: tuple[str, ...] | None = None,
    write_roles: tuple[str, ...] | None = None,
    delete_roles: tuple[str, ...] | None = None,
) -> APIRouter:
    """List/search/stats/bulk/CRUD routes over one registry controller.

    ``create``/``update`` replace the generic write for entities with extra
    steps (find-or-create, password hashing). Static paths are registered
    before ``/{record_id}`` so they are never captured as ids.
    """
    router = APIRouter(prefix=prefix, tags=[name])
    reader = _guard(read_roles)
    writer = _guard(write_roles)
    deleter = _guard(delete_roles or write_roles)

    @router.get("")
    async def list_records(
        request: Request,
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(reader),
    ):
        result = await registry.by_name(name).list(query_params(request.query_params))
        return page(result)

    @router.get("/search")
    async def search_records(
        request: Request,
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(reader),
    ):
        result = await registry.by_name(name).search(query_params(request.query_params))
        return page(result)

    @router.get("/stats")
    async def record_stats(
        period: str = "month",
        startDate: str | None = None,
        endDate: str | None = None,
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(reader),
    ):
        result = await registry.by_name(name).stats(period, startDate, endDate)
        return ok(result.to_dict())

    @router.post("/bulk-update")
    async def bulk_update_records(
        payload: BulkUpdateRequest,
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(writer),
    ):
        result = await registry.by_name(name).bulk_update(
            payload.ids, payload.data, actor_id(actor)
        )
        return ok(
            {"modifiedCount": result.count},
            message=f"{result.count} {label} records updated",
        )

    @router.post("/bulk-delete")
    async def bulk_delete_records(
        payload: BulkDeleteRequest,
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(deleter),
    ):
        result = await registry.by_name(name).bulk_delete(payload.ids, actor_id(actor))
        return ok(
            {"deletedCount": result.count},
            message=f"{result.count} {label} records deleted",
        )

    @router.get("/{record_id}")
    async def get_record(
        record_id: str,
        includeDeleted: bool = False,
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(reader),
    ):
        record = await registry.by_name(name).get_by_id(record_id, include_deleted=includeDeleted)
        return ok(record)

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_record(
        payload: dict[str, Any],
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(writer),
    ):
        if create is not None:
            record = await create(registry, payload, actor_id(actor))
        else:
            record = await registry.by_name(name).create(payload, actor_id(actor))
        return ok(record, message=f"{label} created successfully")

    @router.put("/{record_id}")
    async def update_record(
        record_id: str,
        payload: dict[str, Any],
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(writer),
    ):
        if update is not None:
            result = await update(registry, record_id, payload, actor_id(actor))
        else:
            result = await registry.by_name(name).update(record_id, payload, actor_id(actor))
        return updated(result, label)

    @router.delete("/{record_id}")
    async def delete_record(
        record_id: str,
        registry: ControllerRegistry = Depends(get_registry),
        actor: Actor | None = Depends(deleter),
    ):
        await registry.by_name(name).delete(record_id, actor_id(actor))
        return ok(message=f"{label} deleted successfully")

    return router
