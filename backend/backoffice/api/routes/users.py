from __future__ import annotations

from typing import Any

from backoffice.api.routes.records import build_record_router
from backoffice.services.entities.users import create_user, update_user
from backoffice.services.record_controller import UpdateResult
from backoffice.services.registry import ControllerRegistry

ADMIN_ONLY = ("admin",)


async def _create(registry: ControllerRegistry, data: dict[str, Any], actor_id: str | None) -> dict[str, Any]:
    return await create_user(registry.users, data, actor_id)


async def _update(
    registry: ControllerRegistry, user_id: str, data: dict[str, Any], actor_id: str | None
) -> UpdateResult:
    return await update_user(registry.users, user_id, data, actor_id)


router = build_record_router(
    "users",
    "/users",
    label="User",
    create=_create,
    update=_update,
    read_roles=ADMIN_ONLY,
    write_roles=ADMIN_ONLY,
)
