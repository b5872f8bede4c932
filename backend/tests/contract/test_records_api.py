from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from backoffice.api.deps.services import get_registry
from backoffice.main import create_app

ADMIN_HEADERS = {"X-User-Id": "a" * 24, "X-User-Role": "Admin"}
DISPATCHER_HEADERS = {"X-User-Id": "d" * 24, "X-User-Role": "dispatcher"}
VIEWER_HEADERS = {"X-User-Id": "e" * 24, "X-User-Role": "viewer"}


@pytest_asyncio.fixture
async def client(registry):
    app = create_app()
    app.dependency_overrides[get_registry] = lambda: registry
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_customer_crud_envelopes(client):
    created = await client.post("/api/customers", json={"companyName": "Acme"}, headers=ADMIN_HEADERS)
    assert created.status_code == 201
    body = created.json()
    assert body["success"] is True
    assert body["message"] == "Customer created successfully"
    customer_id = body["data"]["id"]

    listed = await client.get("/api/customers", params={"limit": 5})
    assert listed.status_code == 200
    assert listed.json()["pagination"] == {"total": 1, "totalPages": 1, "currentPage": 1, "limit": 5}
    assert listed.json()["data"][0]["companyName"] == "Acme"

    unchanged = await client.put(f"/api/customers/{customer_id}", json={"companyName": "Acme"})
    assert unchanged.json()["message"] == "No changes detected"
    renamed = await client.put(f"/api/customers/{customer_id}", json={"companyName": "Acme Co"})
    assert renamed.json()["message"] == "Customer updated successfully"
    assert renamed.json()["data"]["companyName"] == "Acme Co"

    deleted = await client.delete(f"/api/customers/{customer_id}", headers=ADMIN_HEADERS)
    assert deleted.json() == {"success": True, "message": "Customer deleted successfully"}
    missing = await client.get(f"/api/customers/{customer_id}")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Customer not found"}
    restored_view = await client.get(f"/api/customers/{customer_id}", params={"includeDeleted": "true"})
    assert restored_view.status_code == 200


@pytest.mark.asyncio
async def test_static_paths_are_not_captured_as_ids(client):
    await client.post("/api/customers", json={"companyName": "Acme"})

    search = await client.get("/api/customers/search", params={"search": "acm"})
    stats = await client.get("/api/customers/stats", params={"period": "all"})

    assert search.status_code == 200
    assert search.json()["pagination"]["total"] == 1
    assert stats.status_code == 200
    assert stats.json()["data"] == {"period": "all", "total": 1, "dateRange": None}

    half_open = await client.get("/api/customers/stats", params={"startDate": "2024-01-01"})
    assert half_open.status_code == 400
    assert half_open.json() == {"success": False, "error": "startDate and endDate must be provided together"}


@pytest.mark.asyncio
async def test_error_statuses(client, store):
    bad_id = await client.get("/api/customers/not-an-id")
    assert bad_id.status_code == 400
    assert bad_id.json() == {"success": False, "error": "Invalid ID format"}

    invalid = await client.post("/api/customers", json={})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "Validation failed"
    assert invalid.json()["details"][0]["field"] == "companyName"

    malformed = await client.post("/api/customers/bulk-delete", json={"ids": "abc"})
    assert malformed.status_code == 400
    assert malformed.json()["error"] == "Validation failed"
    assert malformed.json()["details"][0]["field"] == "ids"

    store.failing_classes.add("Carrier")
    broken = await client.get("/api/carriers")
    assert broken.status_code == 500
    assert broken.json() == {"success": False, "error": "Failed to fetch Carrier"}


@pytest.mark.asyncio
async def test_party_lookup_failure_keeps_the_envelope(client, store):
    store.failing_classes.add("Customer")

    response = await client.post(
        "/api/loads",
        json={"customer": {"id": "c" * 24}, "carrier": {"name": "Haul Co"}},
        headers=DISPATCHER_HEADERS,
    )

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to fetch Customer"}
    assert store.objects("Load") == []


@pytest.mark.asyncio
async def test_unexpected_errors_use_the_envelope(monkeypatch):
    def broken_registry():
        raise RuntimeError("registry exploded")

    app = create_app()
    app.dependency_overrides[get_registry] = broken_registry
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        hidden = await http.get("/api/customers")
        monkeypatch.setenv("APP_ENV", "development")
        detailed = await http.get("/api/customers")

    assert hidden.status_code == 500
    assert hidden.json() == {"success": False, "error": "Internal server error"}
    assert detailed.status_code == 500
    assert detailed.json()["details"] == "registry exploded"


@pytest.mark.asyncio
async def test_healthz_reports_notification_service(registry):
    app = create_app()
    app.state.registry = registry
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        response = await http.get("/api/healthz")

    assert response.json() == {"status": "ok", "notifications": "ok"}


@pytest.mark.asyncio
async def test_bulk_routes_report_counts(client):
    ids = []
    for name in ("Alpha", "Bravo"):
        response = await client.post("/api/customers", json={"companyName": name})
        ids.append(response.json()["data"]["id"])

    updated = await client.post(
        "/api/customers/bulk-update", json={"ids": ids, "data": {"phoneNumber": "555"}}
    )
    deleted = await client.post("/api/customers/bulk-delete", json={"ids": ids})
    empty = await client.post("/api/customers/bulk-delete", json={"ids": []})

    assert updated.json()["data"] == {"modifiedCount": 2}
    assert deleted.json()["data"] == {"deletedCount": 2}
    assert deleted.json()["message"] == "2 Customer records deleted"
    assert empty.status_code == 400


@pytest.mark.asyncio
async def test_role_gates(client):
    body = {"customer": {"companyName": "Acme"}, "carrier": {"name": "Haul Co"}}

    anonymous = await client.post("/api/loads", json=body)
    viewer = await client.post("/api/loads", json=body, headers=VIEWER_HEADERS)
    users = await client.get("/api/users", headers=DISPATCHER_HEADERS)
    dispatcher = await client.post("/api/loads", json=body, headers=DISPATCHER_HEADERS)

    assert anonymous.status_code == 401
    assert anonymous.json() == {"success": False, "error": "Authentication required"}
    assert viewer.status_code == 403
    assert viewer.json()["error"] == "Insufficient permissions"
    assert users.status_code == 403
    assert dispatcher.status_code == 201
    assert dispatcher.json()["data"]["billOfLadingNumber"] == "CC-0001"

    load_id = dispatcher.json()["data"]["id"]
    removal = await client.delete(f"/api/loads/{load_id}", headers=DISPATCHER_HEADERS)
    assert removal.status_code == 403


@pytest.mark.asyncio
async def test_auth_can_be_disabled(client, monkeypatch):
    monkeypatch.setenv("AUTH_DISABLED", "true")

    response = await client.post(
        "/api/loads", json={"customer": {"companyName": "Acme"}, "carrier": {"name": "Haul Co"}}
    )

    assert response.status_code == 201


@pytest.mark.asyncio
async def test_duplicate_user_is_a_conflict(client):
    payload = {
        "firstName": "Ana",
        "lastName": "Diaz",
        "email": "ana@example.test",
        "password": "secret1",
        "role": "dispatcher",
    }

    first = await client.post("/api/users", json=payload, headers=ADMIN_HEADERS)
    second = await client.post("/api/users", json=payload, headers=ADMIN_HEADERS)

    assert first.status_code == 201
    assert "password" not in first.json()["data"]
    assert second.status_code == 409
    assert second.json() == {
        "success": False,
        "error": "User with this email already exists",
        "details": {"field": "email"},
    }


@pytest.mark.asyncio
async def test_load_status_routes(client):
    created = await client.post(
        "/api/loads",
        json={"customer": {"companyName": "Acme"}, "carrier": {"name": "Haul Co"}, "value": 900},
        headers=DISPATCHER_HEADERS,
    )
    load_id = created.json()["data"]["id"]

    missing_status = await client.put(f"/api/loads/{load_id}/status", json={}, headers=DISPATCHER_HEADERS)
    delivered = await client.put(
        f"/api/loads/{load_id}/status", json={"status": "Delivered"}, headers=DISPATCHER_HEADERS
    )
    by_status = await client.get("/api/loads/status/Delivered")
    history = await client.get(f"/api/loads/{load_id}/history", params={"limit": 1})
    receivable = await client.get(f"/api/payments/receivable/load/{load_id}")
    received = await client.put(
        f"/api/payments/receivable/{receivable.json()['data']['id']}/received", headers=DISPATCHER_HEADERS
    )
    dashboard = await client.get("/api/stats/loads", params={"period": "all"})

    assert missing_status.status_code == 400
    assert missing_status.json()["details"] == [{"field": "status", "message": "status is required"}]
    assert delivered.json()["message"] == "Load status updated successfully"
    assert [item["id"] for item in by_status.json()["data"]] == [load_id]
    assert history.json()["pagination"] == {"total": 2, "totalPages": 2, "currentPage": 1, "limit": 1}
    assert history.json()["data"][0]["action"] == "status_updated"
    assert received.json()["data"]["invoiceStatus"] == "received"
    assert dashboard.json()["data"]["byStatus"] == {"Delivered": 1}
    assert dashboard.json()["data"]["revenue"] == 900
