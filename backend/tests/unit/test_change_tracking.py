from datetime import datetime, timezone

from backoffice.repositories.history_repository import FieldChange
from backoffice.services.change_tracking import changed_fields, diff_fields, values_differ


def test_whitespace_only_difference_is_not_a_change():
    assert values_differ(" X ", "X") is False
    assert diff_fields({"name": " X "}, {"name": "X"}) == []


def test_missing_and_present_values():
    assert values_differ(None, None) is False
    assert values_differ(None, "a") is True
    assert values_differ("a", None) is True


def test_dates_compare_by_instant():
    stored = {"__type": "Date", "iso": "2024-03-05T10:00:00.000Z"}

    assert values_differ(stored, "2024-03-05T10:00:00Z") is False
    assert values_differ(stored, datetime(2024, 3, 5, 10, tzinfo=timezone.utc)) is False
    assert values_differ(stored, "2024-03-06T10:00:00Z") is True


def test_pointers_and_expanded_objects_compare_by_id():
    pointer = {"__type": "Pointer", "className": "Customer", "objectId": "c" * 24}
    expanded = {"__type": "Object", "className": "Customer", "objectId": "c" * 24, "companyName": "Acme"}

    assert values_differ(pointer, "c" * 24) is False
    assert values_differ(expanded, "c" * 24) is False
    assert values_differ(expanded, "d" * 24) is True


def test_structures_compare_canonically():
    assert values_differ({"city": "Austin", "state": "TX"}, {"state": "TX", "city": "Austin"}) is False
    assert values_differ(["a", "b"], ["b", "a"]) is True


def test_numbers_and_booleans():
    assert values_differ(1500, 1500.0) is False
    assert values_differ(1, True) is True
    assert values_differ(10, "10") is True


def test_diff_fields_keeps_body_order_and_skips_bookkeeping():
    existing = {"objectId": "x", "name": "Old", "phone": "1", "updatedAt": "t1"}
    proposed = {"updatedAt": "t2", "phone": "2", "name": "New", "objectId": "y"}

    assert diff_fields(existing, proposed) == [
        FieldChange("phone", "1", "2"),
        FieldChange("name", "Old", "New"),
    ]


def test_changed_fields_returns_new_values():
    assert changed_fields({"status": "Listed"}, {"status": "Delivered", "value": None}) == {
        "status": "Delivered"
    }
