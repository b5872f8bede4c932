from backoffice.services.validation import FieldRule, get_path, validate

RULES = {
    "companyName": FieldRule(required=True, type="string"),
    "email": FieldRule(type="email"),
    "daysToPay": FieldRule(type="number", min=1, max=90),
    "status": FieldRule(type="string", enum=("active", "suspended")),
    "address.city": FieldRule(type="string"),
    "emails": FieldRule(type="array"),
    "invoicedDate": FieldRule(type="date"),
}


def test_valid_payload_has_no_errors():
    data = {
        "companyName": "Acme",
        "email": "ops@acme.test",
        "daysToPay": "30",
        "status": "active",
        "address": {"city": "Austin"},
        "emails": [],
        "invoicedDate": "2024-03-05",
    }

    assert validate(data, RULES) == []


def test_every_violation_is_reported():
    data = {
        "email": "not-an-email",
        "daysToPay": 120,
        "status": "gone",
        "address": {"city": 7},
        "emails": "a@b.c",
        "invoicedDate": "soon",
    }

    errors = {error["field"]: error["message"] for error in validate(data, RULES)}

    assert errors == {
        "companyName": "companyName is required",
        "email": "email must be a valid email",
        "daysToPay": "daysToPay must be at most 90",
        "status": "status must be one of: active, suspended",
        "address.city": "address.city must be a string",
        "emails": "emails must be an array",
        "invoicedDate": "invoicedDate must be a valid date",
    }


def test_blank_strings_count_as_missing():
    for blank in ("", "   "):
        errors = validate({"companyName": blank}, RULES)
        assert errors == [{"field": "companyName", "message": "companyName is required"}]


def test_booleans_are_not_numbers():
    errors = validate({"companyName": "Acme", "daysToPay": True}, RULES)

    assert errors == [{"field": "daysToPay", "message": "daysToPay must be a number"}]


def test_nested_paths_through_non_mapping_values_are_missing():
    rules = {"customer.companyName": FieldRule(required=True, type="string")}

    assert validate({"customer": "c" * 24}, rules) == [
        {"field": "customer.companyName", "message": "customer.companyName is required"}
    ]
    assert get_path({"customer": {"companyName": "Acme"}}, "customer.companyName") == "Acme"
