from __future__ import annotations

import re
from typing import Any, Iterable

from backoffice.formatters.customers import (
    format_customer,
    format_customer_list,
    format_customer_summary,
)
from backoffice.repositories.record_repository import is_object_id
from backoffice.services.record_controller import (
    NOT_DELETED,
    ControllerConfig,
    Formatter,
    RecordController,
)
from backoffice.services.validation import FieldRule, ValidationRuleSet

ADDRESS_FIELDS = ("address", "city", "state", "zipCode")

CUSTOMER_CONFIG = ControllerConfig(
    entity="Customer",
    class_name="Customer",
    rules=ValidationRuleSet(
        create={
            "companyName": FieldRule(required=True, type="string"),
            **{f"customerAddress.{name}": FieldRule(type="string") for name in ADDRESS_FIELDS},
            "emails": FieldRule(type="array"),
        },
        update={
            "companyName": FieldRule(type="string"),
            **{f"customerAddress.{name}": FieldRule(type="string") for name in ADDRESS_FIELDS},
            "emails": FieldRule(type="array"),
            "phoneNumber": FieldRule(type="string"),
        },
    ),
    searchable_fields=(
        "companyName",
        "customerAddress.city",
        "customerAddress.state",
        "emails",
        "phoneNumber",
    ),
    soft_delete=True,
    formatter=Formatter(
        full=format_customer,
        list=format_customer_list,
        summary=format_customer_summary,
    ),
)


def merge_unique(current: Iterable[Any] | None, incoming: Iterable[Any] | None) -> list[Any]:
    merged: list[Any] = []
    for value in [*(current or []), *(incoming or [])]:
        if value not in (None, "") and value not in merged:
            merged.append(value)
    return merged


def normalize_emails(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return merge_unique([], [item.strip().lower() for item in value if isinstance(item, str)])


def exact_match(value: str) -> dict[str, str]:
    return {"$regex": f"^{re.escape(value.strip())}$", "$options": "i"}


def _customer_changes(existing: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    if data.get("companyName"):
        changes["companyName"] = data["companyName"].strip()
    if data.get("customerAddress"):
        changes["customerAddress"] = data["customerAddress"]
    emails = normalize_emails(data.get("emails"))
    if emails:
        changes["emails"] = merge_unique(existing.get("emails"), emails)
    if data.get("phoneNumber"):
        changes["phoneNumber"] = data["phoneNumber"]
    return changes


async def find_or_create_customer(
    customers: RecordController, data: Any, actor_id: str | None
) -> str | None:
    """Resolve a customer reference from a load body to a customer id.

    Accepts an id, or an object carrying an ``id`` or a ``companyName``. A
    known customer is refreshed with the incoming contact details; an unknown
    company name creates a new customer.
    """
    if isinstance(data, str):
        return (await customers.fetch(data))["objectId"] if data else None
    if not isinstance(data, dict):
        return None

    candidate_id = data.get("id") or data.get("objectId")
    if is_object_id(candidate_id):
        with customers.store_errors("fetch"):
            existing = await customers.repo.get(candidate_id)
        if existing is not None and not existing.get("deletedAt"):
            await customers.apply_update(candidate_id, _customer_changes(existing, data), actor_id)
            return candidate_id

    company_name = (data.get("companyName") or "").strip()
    if not company_name:
        return None

    with customers.store_errors("fetch"):
        existing = await customers.repo.first(
            {"companyName": exact_match(company_name), **NOT_DELETED}
        )
    if existing is None:
        payload = {
            "companyName": company_name,
            "customerAddress": data.get("customerAddress") or {},
            "emails": normalize_emails(data.get("emails")),
        }
        if data.get("phoneNumber"):
            payload["phoneNumber"] = data["phoneNumber"]
        created = await customers.insert(payload, actor_id)
        return created["objectId"]

    changes = _customer_changes(existing, data)
    changes.pop("companyName", None)
    await customers.apply_update(existing["objectId"], changes, actor_id)
    return existing["objectId"]
