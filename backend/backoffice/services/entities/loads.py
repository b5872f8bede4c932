from __future__ import annotations

import logging
import random
import re
import time
from typing import TYPE_CHECKING, Any, Mapping

from backoffice.clients.notifications import NotificationClient
from backoffice.errors import DuplicateEntry, ValidationFailed
from backoffice.formatters.history import format_history
from backoffice.formatters.loads import format_load, format_load_list, format_load_summary
from backoffice.repositories.record_repository import pointer, ref_id
from backoffice.services.entities.carriers import find_or_create_carrier
from backoffice.services.entities.customers import find_or_create_customer, normalize_emails
from backoffice.services.entities.payments import ensure_payments_for_load
from backoffice.services.history_service import HistoryRecorder
from backoffice.services.query_builder import Equals, ParamValue
from backoffice.services.record_controller import (
    ControllerConfig,
    Formatter,
    ListResult,
    RecordController,
    UpdateResult,
    require_id,
)
from backoffice.services.validation import FieldRule, ValidationRuleSet, validate
from backoffice.telemetry.tracing import emit_event

if TYPE_CHECKING:
    from backoffice.services.registry import ControllerRegistry

logger = logging.getLogger(__name__)

LOAD_STATUSES = ("Listed", "Dispatched", "Picked up", "Delivered", "On Hold", "Cancelled")
BILL_OF_LADING_PREFIX = "CC-"
ORDER_ID_ATTEMPTS = 3
BILL_OF_LADING_ATTEMPTS = 10

LOAD_CONFIG = ControllerConfig(
    entity="Load",
    class_name="Load",
    rules=ValidationRuleSet(
        create={
            "orderId": FieldRule(type="string"),
            "customer.companyName": FieldRule(type="string"),
            "carrier.name": FieldRule(type="string"),
            "status": FieldRule(type="string", enum=LOAD_STATUSES),
            "value": FieldRule(type="number"),
        },
        update={
            "orderId": FieldRule(type="string"),
            "status": FieldRule(type="string", enum=LOAD_STATUSES),
            "tracking": FieldRule(type="string"),
            "value": FieldRule(type="number"),
        },
    ),
    searchable_fields=("orderId", "status", "tracking", "billOfLadingNumber"),
    populate=("customer", "carrier"),
    list_fields=("status",),
    field_types={"value": "number"},
    reference_fields={"customer": "Customer", "carrier": "Carrier"},
    unique_fields=("orderId",),
    upload_field="documents",
    formatter=Formatter(full=format_load, list=format_load_list, summary=format_load_summary),
)


def _compact(value: Any) -> Any:
    """Drop empty strings, ``None`` and emptied containers, recursively."""
    if isinstance(value, dict):
        compacted = {key: _compact(item) for key, item in value.items()}
        return {key: item for key, item in compacted.items() if item not in (None, "", {}, [])}
    if isinstance(value, list):
        compacted = [_compact(item) for item in value]
        return [item for item in compacted if item not in (None, "", {}, [])]
    return value


def _body(data: Mapping[str, Any]) -> dict[str, Any]:
    nested = data.get("load")
    return dict(nested if isinstance(nested, Mapping) else data)


def _vins(payload: Mapping[str, Any]) -> list[str]:
    vehicle = payload.get("vehicle")
    if not isinstance(vehicle, dict):
        return []
    vins = []
    for item in vehicle.get("shipment") or []:
        vin = item.get("vin") if isinstance(item, dict) else None
        if isinstance(vin, str) and vin.strip():
            vins.append(vin.strip())
    return vins


async def ensure_unique_vins(
    loads: RecordController, payload: Mapping[str, Any], *, exclude_id: str | None = None
) -> None:
    vins = _vins(payload)
    if not vins:
        return
    where: dict[str, Any] = {"vehicle.shipment.vin": {"$in": vins}}
    if exclude_id:
        where["objectId"] = {"$ne": exclude_id}
    with loads.store_errors("check"):
        existing = await loads.repo.first(where)
    if existing is None:
        return
    existing_vins = {
        item.get("vin", "").strip()
        for item in (existing.get("vehicle") or {}).get("shipment") or []
        if isinstance(item, dict) and isinstance(item.get("vin"), str)
    }
    duplicate = next((vin for vin in vins if vin in existing_vins), vins[0])
    raise DuplicateEntry(
        "vehicle.shipment.vin",
        f'VIN "{duplicate}" already exists in another load (Order ID: {existing.get("orderId")})',
    )


async def generate_order_id(loads: RecordController, rng: random.Random | None = None) -> str:
    """Unix seconds followed by four random digits, retried for uniqueness."""
    rng = rng or random.Random()
    base = int(time.time())
    for _ in range(ORDER_ID_ATTEMPTS):
        candidate = f"{base}{rng.randint(1000, 9999)}"
        with loads.store_errors("check"):
            existing = await loads.repo.first({"orderId": candidate})
        if existing is None:
            return candidate
    return f"{int(time.time() * 1000)}{rng.randint(0, 9999)}"


async def generate_bill_of_lading_number(loads: RecordController) -> str:
    """Next ``CC-0001`` style number after the highest one in use."""
    with loads.store_errors("check"):
        last = await loads.repo.first(
            {"billOfLadingNumber": {"$regex": f"^{BILL_OF_LADING_PREFIX}"}},
            order="-billOfLadingNumber",
        )
    next_number = 1
    if last:
        match = re.match(rf"^{BILL_OF_LADING_PREFIX}(\d+)$", last.get("billOfLadingNumber", ""))
        if match:
            next_number = int(match.group(1)) + 1

    for _ in range(BILL_OF_LADING_ATTEMPTS):
        candidate = f"{BILL_OF_LADING_PREFIX}{next_number:04d}"
        with loads.store_errors("check"):
            existing = await loads.repo.first({"billOfLadingNumber": candidate})
        if existing is None:
            return candidate
        next_number += 1
    return f"{BILL_OF_LADING_PREFIX}{str(int(time.time() * 1000))[-4:]}"


async def _link(registry: ControllerRegistry, load_id: str, old: dict[str, Any], new: dict[str, Any]) -> None:
    for name, controller in (("customer", registry.customers), ("carrier", registry.carriers)):
        old_id = ref_id(old.get(name))
        new_id = ref_id(new.get(name))
        if not new_id or new_id == old_id:
            continue
        with controller.store_errors("link"):
            if old_id:
                await controller.repo.remove_values(old_id, "loads", [load_id])
            await controller.repo.add_unique(new_id, "loads", [load_id])


async def _resolve_parties(
    registry: ControllerRegistry, payload: dict[str, Any], actor_id: str | None
) -> None:
    for name, resolver, controller in (
        ("customer", find_or_create_customer, registry.customers),
        ("carrier", find_or_create_carrier, registry.carriers),
    ):
        if name not in payload:
            continue
        value = payload[name]
        if isinstance(value, dict):
            value = _compact(value)
        payload[name] = await resolver(controller, value, actor_id)
    for name in ("customerEmails", "carrierEmails"):
        if name in payload:
            payload[name] = normalize_emails(payload[name])


async def create_load(
    registry: ControllerRegistry, data: Mapping[str, Any], actor_id: str | None
) -> dict[str, Any]:
    loads = registry.loads
    payload = _body(data)
    errors = validate(payload, loads.config.rules.create)
    if errors:
        raise ValidationFailed(errors)
    order_id = payload.get("orderId")
    order_id = order_id.strip() if isinstance(order_id, str) else None
    if order_id:
        await loads.ensure_unique({"orderId": order_id})
    await ensure_unique_vins(loads, payload)
    await _resolve_parties(registry, payload, actor_id)

    payload["orderId"] = order_id or await generate_order_id(loads)
    payload["billOfLadingNumber"] = await generate_bill_of_lading_number(loads)
    payload.setdefault("status", "Listed")
    uploaded = payload.pop("uploadedFiles", None)
    document = _compact(payload)
    if uploaded:
        document["uploadedFiles"] = uploaded

    created = await loads.insert(document, actor_id)
    await _link(registry, created["objectId"], {}, created)
    record = await loads.fetch(created["objectId"])
    if registry.notifier is not None:
        await registry.notifier.send_load_created(record, actor_id)
    return loads.format(record)


async def update_load(
    registry: ControllerRegistry, load_id: str, data: Mapping[str, Any], actor_id: str | None
) -> UpdateResult:
    loads = registry.loads
    existing = await loads.fetch(load_id)
    payload = _body(data)
    errors = validate(payload, loads.config.rules.update)
    if errors:
        raise ValidationFailed(errors)
    await loads.ensure_unique(payload, exclude_id=load_id)
    await ensure_unique_vins(loads, payload, exclude_id=load_id)
    await _resolve_parties(registry, payload, actor_id)
    for name in ("customer", "carrier"):
        if name in payload and payload[name] is None:
            payload.pop(name)

    record, changes = await loads.apply_update(load_id, payload, actor_id)
    if changes:
        await _link(registry, load_id, existing, record)
    return UpdateResult(record=loads.format(record), changed=bool(changes), changes=changes)


async def update_load_status(
    registry: ControllerRegistry, load_id: str, status: Any, actor_id: str | None
) -> UpdateResult:
    if status not in LOAD_STATUSES:
        raise ValidationFailed(
            [{"field": "status", "message": f"status must be one of: {', '.join(LOAD_STATUSES)}"}]
        )
    loads = registry.loads
    existing = await loads.fetch(load_id)
    old_status = existing.get("status")
    record, changes = await loads.apply_update(
        load_id, {"status": status}, actor_id, action="status_updated"
    )
    if not changes:
        return UpdateResult(record=loads.format(record), changed=False)

    emit_event(
        "load.status_updated",
        "Load",
        load_id,
        actor_id=actor_id,
        previous_status=old_status,
        status=status,
    )
    notifier: NotificationClient | None = registry.notifier
    if notifier is not None:
        await notifier.send_load_status_update(record, old_status, status, actor_id)
    if status == "Delivered":
        receivable, payable = await ensure_payments_for_load(
            registry.receivables, registry.payables, record, actor_id
        )
        if notifier is not None:
            if receivable:
                await notifier.send_payment_receivable_created(receivable, record)
            if payable:
                await notifier.send_payment_payable_created(payable, record)
            await notifier.send_load_delivered(record, receivable, payable, actor_id)
    return UpdateResult(record=loads.format(record), changed=True, changes=changes)


async def load_history(
    registry: ControllerRegistry, load_id: str, *, page: int = 1, limit: int = 10
) -> ListResult:
    await registry.loads.fetch(require_id(load_id))
    recorder: HistoryRecorder | None = registry.loads.history
    if recorder is None:
        return ListResult(items=[], total=0, total_pages=0, current_page=page, limit=limit)
    with registry.loads.store_errors("fetch history"):
        records, total = await recorder.list_for(load_id, page=page, limit=limit)
    return ListResult(
        items=[format_history(record) for record in records],
        total=total,
        total_pages=-(-total // limit),
        current_page=page,
        limit=limit,
    )


async def loads_for_party(
    registry: ControllerRegistry,
    party: str,
    party_id: str,
    params: Mapping[str, ParamValue],
) -> ListResult:
    controller = registry.customers if party == "customer" else registry.carriers
    await controller.fetch(party_id)
    return await registry.loads.list(
        params, filters=[Equals(party, pointer(controller.config.class_name, party_id))]
    )


async def loads_by_status(
    registry: ControllerRegistry, status: str, params: Mapping[str, ParamValue]
) -> ListResult:
    return await registry.loads.list(params, filters=[Equals("status", status)])
