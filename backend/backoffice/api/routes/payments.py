from __future__ import annotations

from fastapi import APIRouter, Depends

from backoffice.api.deps.actor import Actor, actor_id, get_actor
from backoffice.api.deps.services import get_registry
from backoffice.api.envelope import ok
from backoffice.api.routes.records import build_record_router
from backoffice.services.entities.payments import (
    mark_receivable_received,
    payable_for_load,
    receivable_for_load,
)
from backoffice.services.registry import ControllerRegistry

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.put("/receivable/{receivable_id}/received")
async def receive_payment(
    receivable_id: str,
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = Depends(get_actor),
):
    record = await mark_receivable_received(registry.receivables, receivable_id, actor_id(actor))
    return ok(record, message="Payment marked as received")


@payment_router.get("/receivable/load/{load_id}")
async def get_receivable_for_load(
    load_id: str,
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = Depends(get_actor),
):
    return ok(await receivable_for_load(registry.receivables, load_id))


@payment_router.get("/payable/load/{load_id}")
async def get_payable_for_load(
    load_id: str,
    registry: ControllerRegistry = Depends(get_registry),
    actor: Actor | None = Depends(get_actor),
):
    return ok(await payable_for_load(registry.payables, load_id))


router = APIRouter()
router.include_router(payment_router)
router.include_router(
    build_record_router("receivables", "/payments/receivable", label="Payment receivable")
)
router.include_router(
    build_record_router("payables", "/payments/payable", label="Payment payable")
)
