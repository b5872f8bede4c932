from backoffice.formatters.common import address, reference
from backoffice.formatters.customers import format_customer_summary
from backoffice.formatters.history import format_history
from backoffice.formatters.loads import format_load, format_load_list, format_load_summary
from backoffice.formatters.payments import format_payable_list, format_receivable
from backoffice.formatters.users import format_user, format_user_summary
from backoffice.repositories.history_repository import FieldChange, HistoryRecord

CUSTOMER = {
    "__type": "Object",
    "className": "Customer",
    "objectId": "c" * 24,
    "companyName": "Acme Freight",
    "emails": ["ops@acme.test"],
}


def test_missing_references_format_as_none_not_absent():
    formatted = format_load({"objectId": "l" * 24, "customer": None})

    assert "customer" in formatted and formatted["customer"] is None
    assert formatted["carrier"] is None
    assert formatted["pickup"] is None
    assert formatted["documents"] == []


def test_expanded_and_unexpanded_references():
    assert reference(CUSTOMER, format_customer_summary)["companyName"] == "Acme Freight"
    pointer = {"__type": "Pointer", "className": "Customer", "objectId": "c" * 24}
    assert reference(pointer, format_customer_summary) == {"id": "c" * 24}
    assert reference("c" * 24, format_customer_summary) == {"id": "c" * 24}
    assert reference("", format_customer_summary) is None


def test_load_views():
    record = {
        "objectId": "l" * 24,
        "orderId": "17000000001234",
        "status": "Listed",
        "customer": CUSTOMER,
        "pickup": {"city": "Austin", "state": "TX", "zipCode": "73301", "date": {"__type": "Date", "iso": "2024-03-05T00:00:00.000Z"}},
        "vehicle": {"shipment": [{"vin": "1HGCM82633A004352"}, {"vin": "2HGCM82633A004353"}]},
        "documents": ["https://files.test/bol.pdf"],
        "createdBy": "a" * 24,
        "createdAt": "2024-03-05T10:00:00.000Z",
    }

    full = format_load(record)
    assert full["id"] == "l" * 24
    assert full["customer"]["companyName"] == "Acme Freight"
    assert full["pickup"]["zip"] == 73301
    assert full["pickup"]["date"] == "2024-03-05T00:00:00.000Z"
    assert full["createdBy"] == "a" * 24

    listed = format_load_list(record)
    assert listed["pickupCity"] == "Austin"
    assert listed["vehiclesCount"] == 2
    assert listed["documentsCount"] == 1
    assert "vehicle" not in listed

    assert format_load_summary(record)["customer"] == "Acme Freight"


def test_address_fills_zip_variants():
    assert address({"zip": 10001})["zipCode"] == "10001"
    assert address({"zipCode": "10001"})["zip"] == 10001
    assert address(None) is None


def test_user_views_never_expose_password():
    record = {"objectId": "u" * 24, "email": "a@b.test", "firstName": "Ana", "lastName": "Diaz", "password": "hash"}

    assert "password" not in format_user(record)
    assert format_user(record)["status"] == "active"
    assert format_user_summary(record)["fullName"] == "Ana Diaz"


def test_payment_views():
    receivable = format_receivable({"objectId": "r" * 24, "loadId": {"__type": "Pointer", "className": "Load", "objectId": "l" * 24}})
    assert receivable["loadId"] == "l" * 24
    assert receivable["load"] is None
    assert receivable["daysToPay"] == 30
    assert receivable["invoiceStatus"] == "pending"

    payable = format_payable_list({"objectId": "p" * 24, "accountNumber": "9876543210", "images": ["a", "b"]})
    assert payable["accountNumber"] == "****3210"
    assert payable["imagesCount"] == 2


def test_history_view_is_camel_case():
    record = HistoryRecord(
        id="h1",
        entity_type="Load",
        entity_id="l" * 24,
        action="updated",
        changed_by="a" * 24,
        changes=[FieldChange("status", "Listed", "Dispatched")],
        created_at="2024-03-05T10:00:00.000Z",
    )

    assert format_history(record) == {
        "id": "h1",
        "entityType": "Load",
        "entityId": "l" * 24,
        "action": "updated",
        "changedBy": "a" * 24,
        "changes": [{"field": "status", "oldValue": "Listed", "newValue": "Dispatched"}],
        "createdAt": "2024-03-05T10:00:00.000Z",
    }
