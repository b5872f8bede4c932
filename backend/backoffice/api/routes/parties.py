from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from backoffice.api.deps.actor import Actor, get_actor
from backoffice.api.deps.services import get_registry
from backoffice.api.envelope import page, query_params
from backoffice.api.routes.records import build_record_router
from backoffice.services.entities.loads import loads_for_party
from backoffice.services.registry import ControllerRegistry

party_router = APIRouter(tags=["customers", "carriers"])


@party_router.get("/customers/{customer_id}/loads")
async def list_customer_loads(
    customer_id: str,
    request: Request,
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = Depends(get_actor),
):
    result = await loads_for_party(
        registry, "customer", customer_id, query_params(request.query_params)
    )
    return page(result)


@party_router.get("/carriers/{carrier_id}/loads")
async def list_carrier_loads(
    carrier_id: str,
    request: Request,
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = Depends(get_actor),
):
    result = await loads_for_party(
        registry, "carrier", carrier_id, query_params(request.query_params)
    )
    return page(result)


router = APIRouter()
router.include_router(party_router)
router.include_router(build_record_router("customers", "/customers", label="Customer"))
router.include_router(build_record_router("carriers", "/carriers", label="Carrier"))
