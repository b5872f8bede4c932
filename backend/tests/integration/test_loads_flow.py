from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backoffice.errors import DuplicateEntry, NotFound, ValidationFailed
from backoffice.services.entities.loads import (
    create_load,
    load_history,
    loads_by_status,
    loads_for_party,
    update_load,
    update_load_status,
)
from backoffice.services.entities.payments import (
    mark_receivable_received,
    payable_for_load,
    receivable_for_load,
)
from backoffice.services.stats_service import load_dashboard
from backoffice.tasks.stats_runner import LOAD_STATS_CLASS, recompute_daily_stats

DISPATCHER = "d" * 24


def _load_body(**overrides):
    body = {
        "customer": {"companyName": "Acme Freight", "emails": ["ops@acme.test"]},
        "carrier": {"name": "Haul Co", "mcNumber": "MC100"},
        "vehicle": {"shipment": [{"vin": "1HGCM82633A004352", "make": "Honda"}]},
        "pickup": {"city": "Austin", "state": "TX", "address": ""},
        "customerEmails": "Billing@Acme.test, ops@acme.test",
        "value": "1500",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_load_resolves_parties_and_numbers(registry, store, sent_notifications):
    load = await create_load(registry, _load_body(), DISPATCHER)

    assert load["status"] == "Listed"
    assert load["billOfLadingNumber"] == "CC-0001"
    assert load["orderId"]
    assert load["value"] == 1500
    assert load["customer"]["companyName"] == "Acme Freight"
    assert load["carrier"]["mcNumber"] == "MC100"
    assert load["customerEmails"] == ["billing@acme.test", "ops@acme.test"]
    assert load["pickup"]["city"] == "Austin"
    assert "address" not in store.objects("Load")[0]["pickup"]

    (customer,) = store.objects("Customer")
    (carrier,) = store.objects("Carrier")
    assert customer["loads"] == [load["id"]]
    assert carrier["loads"] == [load["id"]]
    assert [item["type"] for item in sent_notifications] == ["load_created"]
    assert sent_notifications[0]["recipients"] == ["billing@acme.test", "ops@acme.test"]


@pytest.mark.asyncio
async def test_second_load_reuses_parties_and_advances_bill_of_lading(registry, store):
    await create_load(registry, _load_body(), DISPATCHER)

    second = await create_load(
        registry,
        {
            "load": _load_body(
                customer={"companyName": "  acme freight "},
                carrier={"mcNumber": "MC100"},
                vehicle={"shipment": [{"vin": "2T1BURHE0JC000001"}]},
            )
        },
        DISPATCHER,
    )

    assert second["billOfLadingNumber"] == "CC-0002"
    assert len(store.objects("Customer")) == 1
    assert len(store.objects("Carrier")) == 1
    assert len(store.objects("Customer")[0]["loads"]) == 2


@pytest.mark.asyncio
async def test_duplicate_vin_is_rejected_with_order_id(registry, store):
    first = await create_load(registry, _load_body(orderId="ORD-1"), DISPATCHER)

    with pytest.raises(DuplicateEntry) as exc:
        await create_load(registry, _load_body(orderId="ORD-2"), DISPATCHER)

    assert exc.value.field == "vehicle.shipment.vin"
    assert exc.value.message == (
        'VIN "1HGCM82633A004352" already exists in another load (Order ID: ORD-1)'
    )
    assert [record["objectId"] for record in store.objects("Load")] == [first["id"]]


@pytest.mark.asyncio
async def test_duplicate_order_id_is_rejected(registry):
    await create_load(registry, _load_body(orderId="ORD-1"), DISPATCHER)

    with pytest.raises(DuplicateEntry) as exc:
        await create_load(
            registry,
            _load_body(orderId="ORD-1", vehicle={"shipment": [{"vin": "OTHER"}]}),
            DISPATCHER,
        )

    assert exc.value.field == "orderId"


@pytest.mark.asyncio
async def test_duplicate_order_id_leaves_parties_untouched(registry, store):
    await create_load(registry, _load_body(orderId="ORD-1"), DISPATCHER)

    with pytest.raises(DuplicateEntry) as exc:
        await create_load(
            registry,
            _load_body(
                orderId=" ORD-1 ",
                customer={"companyName": "Brand New Co"},
                carrier={"name": "New Haul"},
                vehicle={"shipment": [{"vin": "OTHER"}]},
            ),
            DISPATCHER,
        )

    assert exc.value.field == "orderId"
    assert [record["companyName"] for record in store.objects("Customer")] == ["Acme Freight"]
    assert [record["name"] for record in store.objects("Carrier")] == ["Haul Co"]
    assert len(store.objects("Load")) == 1


@pytest.mark.asyncio
async def test_update_to_taken_order_id_leaves_parties_untouched(registry, store):
    await create_load(registry, _load_body(orderId="ORD-1"), DISPATCHER)
    second = await create_load(
        registry,
        _load_body(orderId="ORD-2", vehicle={"shipment": [{"vin": "OTHER"}]}),
        DISPATCHER,
    )

    with pytest.raises(DuplicateEntry) as exc:
        await update_load(
            registry,
            second["id"],
            {"orderId": "ORD-1", "customer": {"companyName": "Brand New Co"}},
            DISPATCHER,
        )

    assert exc.value.field == "orderId"
    assert len(store.objects("Customer")) == 1


@pytest.mark.asyncio
async def test_invalid_load_body_is_rejected_before_writes(registry, store):
    with pytest.raises(ValidationFailed) as exc:
        await create_load(registry, _load_body(status="Flying", value="lots"), DISPATCHER)

    assert {detail["field"] for detail in exc.value.details} == {"status", "value"}
    assert store.objects("Customer") == []
    assert store.objects("Load") == []


@pytest.mark.asyncio
async def test_update_load_moves_customer_link(registry, store):
    load = await create_load(registry, _load_body(), DISPATCHER)

    result = await update_load(
        registry, load["id"], {"customer": {"companyName": "Beta Logistics"}}, DISPATCHER
    )

    assert result.changed is True
    assert result.record["customer"]["companyName"] == "Beta Logistics"
    customers = {record["companyName"]: record for record in store.objects("Customer")}
    assert customers["Acme Freight"]["loads"] == []
    assert customers["Beta Logistics"]["loads"] == [load["id"]]

    beta_loads = await loads_for_party(registry, "customer", customers["Beta Logistics"]["objectId"], {})
    acme_loads = await loads_for_party(registry, "customer", customers["Acme Freight"]["objectId"], {})
    assert [item["id"] for item in beta_loads.items] == [load["id"]]
    assert acme_loads.total == 0
    with pytest.raises(NotFound):
        await loads_for_party(registry, "carrier", "f" * 24, {})


@pytest.mark.asyncio
async def test_update_load_without_changes_is_a_no_op(registry, store):
    load = await create_load(registry, _load_body(orderId="ORD-1"), DISPATCHER)
    history_before = len(store.objects("History"))

    result = await update_load(registry, load["id"], {"orderId": "ORD-1", "value": 1500}, DISPATCHER)

    assert result.changed is False
    assert len(store.objects("History")) == history_before


@pytest.mark.asyncio
async def test_delivery_creates_payments_once(registry, store, sent_notifications):
    load = await create_load(registry, _load_body(), DISPATCHER)

    dispatched = await update_load_status(registry, load["id"], "Dispatched", DISPATCHER)
    delivered = await update_load_status(registry, load["id"], "Delivered", DISPATCHER)
    repeated = await update_load_status(registry, load["id"], "Delivered", DISPATCHER)
    await update_load_status(registry, load["id"], "On Hold", DISPATCHER)
    await update_load_status(registry, load["id"], "Delivered", DISPATCHER)

    assert dispatched.changed is True
    assert delivered.record["status"] == "Delivered"
    assert repeated.changed is False
    assert len(store.objects("PaymentReceivable")) == 1
    assert len(store.objects("PaymentPayable")) == 1

    receivable = await receivable_for_load(registry.receivables, load["id"])
    payable = await payable_for_load(registry.payables, load["id"])
    assert receivable["loadId"] == load["id"]
    assert receivable["load"] == {"id": load["id"], "orderId": load["orderId"], "status": "Delivered"}
    assert receivable["customer"]["companyName"] == "Acme Freight"
    assert receivable["invoiceStatus"] == "pending"
    assert receivable["daysToPay"] == 30
    assert payable["carrier"]["name"] == "Haul Co"

    types = [item["type"] for item in sent_notifications]
    assert types.count("load_delivered") == 2
    assert "load_status_update" in types


@pytest.mark.asyncio
async def test_invalid_status_is_rejected(registry):
    load = await create_load(registry, _load_body(), DISPATCHER)

    with pytest.raises(ValidationFailed) as exc:
        await update_load_status(registry, load["id"], "Teleported", DISPATCHER)

    assert exc.value.details[0]["field"] == "status"


@pytest.mark.asyncio
async def test_receivable_can_be_marked_received(registry):
    load = await create_load(registry, _load_body(), DISPATCHER)
    await update_load_status(registry, load["id"], "Delivered", DISPATCHER)
    receivable = await receivable_for_load(registry.receivables, load["id"])

    received = await mark_receivable_received(registry.receivables, receivable["id"], DISPATCHER)

    assert received["invoiceStatus"] == "received"
    assert received["invoicedDate"] is not None
    with pytest.raises(NotFound, match="Payment payable not found"):
        await payable_for_load(registry.payables, "f" * 24)


@pytest.mark.asyncio
async def test_load_history_is_newest_first(registry):
    load = await create_load(registry, _load_body(), DISPATCHER)
    await update_load_status(registry, load["id"], "Dispatched", DISPATCHER)
    await update_load_status(registry, load["id"], "Picked up", DISPATCHER)

    history = await load_history(registry, load["id"], page=1, limit=2)

    assert history.total == 3
    assert history.total_pages == 2
    assert [item["action"] for item in history.items] == ["status_updated", "status_updated"]
    assert history.items[0]["changes"] == [
        {"field": "status", "oldValue": "Dispatched", "newValue": "Picked up"}
    ]
    assert history.items[0]["changedBy"] == DISPATCHER


@pytest.mark.asyncio
async def test_loads_by_status_and_dashboard(registry):
    first = await create_load(registry, _load_body(value=1000), DISPATCHER)
    await create_load(
        registry,
        _load_body(vehicle={"shipment": [{"vin": "OTHER"}]}, value="250.5"),
        DISPATCHER,
    )
    await update_load_status(registry, first["id"], "Dispatched", DISPATCHER)

    listed = await loads_by_status(registry, "Listed", {})
    dashboard = await load_dashboard(registry.loads, "all")
    data = dashboard.to_dict()

    assert listed.total == 1
    assert data["total"] == 2
    assert data["revenue"] == 1250.5
    assert data["byStatus"] == {"Dispatched": 1, "Listed": 1}
    assert data["topCustomers"][0]["name"] == "Acme Freight"
    assert data["topCustomers"][0]["count"] == 2
    assert data["topCarriers"][0]["name"] == "Haul Co"
    assert data["dateRange"] is None


@pytest.mark.asyncio
async def test_daily_stats_snapshot_is_stored_once(registry, store):
    await create_load(registry, _load_body(), DISPATCHER)
    now = datetime(2024, 1, 15, 18, 30, tzinfo=timezone.utc)

    created = await recompute_daily_stats(registry, now=now)
    again = await recompute_daily_stats(registry, now=now)

    assert created is not None
    assert again is None
    (snapshot,) = store.objects(LOAD_STATS_CLASS)
    assert snapshot["date"] == {"__type": "Date", "iso": "2024-01-15T00:00:00.000Z"}
    assert snapshot["totalLoads"] == 1
    assert snapshot["totalRevenue"] == 1500
    assert snapshot["byStatus"] == {"listed": 1}
