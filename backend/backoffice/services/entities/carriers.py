from __future__ import annotations

from typing import Any

from backoffice.formatters.carriers import (
    format_carrier,
    format_carrier_list,
    format_carrier_summary,
)
from backoffice.repositories.record_repository import is_object_id
from backoffice.services.entities.customers import exact_match, merge_unique, normalize_emails
from backoffice.services.record_controller import (
    NOT_DELETED,
    ControllerConfig,
    Formatter,
    RecordController,
)
from backoffice.services.validation import FieldRule, ValidationRuleSet

ADDRESS_FIELDS = ("address", "city", "state", "zipCode")
LIST_FIELDS = ("emails", "photos", "capabilities", "certifications")
TEXT_FIELDS = ("name", "phoneNumber", "companyName", "equipmentType", "size")

CARRIER_CONFIG = ControllerConfig(
    entity="Carrier",
    class_name="Carrier",
    rules=ValidationRuleSet(
        create={
            "name": FieldRule(required=True, type="string"),
            "email": FieldRule(type="email"),
            "equipmentType": FieldRule(type="string"),
            "size": FieldRule(type="string"),
            "capabilities": FieldRule(type="array"),
            "certifications": FieldRule(type="array"),
        },
        update={
            "name": FieldRule(type="string"),
            "phoneNumber": FieldRule(type="string"),
            "email": FieldRule(type="email"),
            "companyName": FieldRule(type="string"),
            "mcNumber": FieldRule(type="string"),
            "dotNumber": FieldRule(type="string"),
            **{f"address.{name}": FieldRule(type="string") for name in ADDRESS_FIELDS},
            **{name: FieldRule(type="array") for name in LIST_FIELDS},
            "equipmentType": FieldRule(type="string"),
            "size": FieldRule(type="string"),
        },
    ),
    searchable_fields=("name", "companyName", "mcNumber", "dotNumber", "equipmentType", "size"),
    unique_fields=("mcNumber", "dotNumber"),
    soft_delete=True,
    upload_field="photos",
    formatter=Formatter(
        full=format_carrier,
        list=format_carrier_list,
        summary=format_carrier_summary,
    ),
)


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _carrier_changes(
    existing: dict[str, Any], data: dict[str, Any], *, keep_identifiers: bool
) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for name in TEXT_FIELDS:
        value = _text(data.get(name))
        if value:
            changes[name] = value
    email = _text(data.get("email"))
    if email:
        changes["email"] = email.lower()
    for name in ("mcNumber", "dotNumber"):
        value = _text(data.get(name))
        if value and not (keep_identifiers and existing.get(name)):
            changes[name] = value
    if data.get("address"):
        changes["address"] = data["address"]
    emails = normalize_emails(data.get("emails"))
    if emails:
        changes["emails"] = merge_unique(existing.get("emails"), emails)
    for name in ("photos", "capabilities", "certifications"):
        values = _strings(data.get(name))
        if values:
            changes[name] = merge_unique(existing.get(name), values)
    return changes


async def _lookup(carriers: RecordController, data: dict[str, Any]) -> dict[str, Any] | None:
    """Match by mcNumber, then dotNumber, then name and company, then name alone."""
    name = _text(data.get("name"))
    company = _text(data.get("companyName"))
    candidates: list[dict[str, Any]] = []
    if _text(data.get("mcNumber")):
        candidates.append({"mcNumber": _text(data.get("mcNumber"))})
    if _text(data.get("dotNumber")):
        candidates.append({"dotNumber": _text(data.get("dotNumber"))})
    if name and company:
        candidates.append({"name": exact_match(name), "companyName": exact_match(company)})
    if name:
        candidates.append({"name": exact_match(name)})
    for where in candidates:
        with carriers.store_errors("fetch"):
            found = await carriers.repo.first({**where, **NOT_DELETED})
        if found is not None:
            return found
    return None


async def find_or_create_carrier(
    carriers: RecordController, data: Any, actor_id: str | None
) -> str | None:
    """Resolve a carrier reference from a load body to a carrier id."""
    if isinstance(data, str):
        return (await carriers.fetch(data))["objectId"] if data else None
    if not isinstance(data, dict):
        return None

    candidate_id = data.get("id") or data.get("objectId")
    if is_object_id(candidate_id):
        with carriers.store_errors("fetch"):
            existing = await carriers.repo.get(candidate_id)
        if existing is not None and not existing.get("deletedAt"):
            changes = _carrier_changes(existing, data, keep_identifiers=False)
            await carriers.apply_update(candidate_id, changes, actor_id)
            return candidate_id

    existing = await _lookup(carriers, data)
    if existing is not None:
        changes = _carrier_changes(existing, data, keep_identifiers=True)
        await carriers.apply_update(existing["objectId"], changes, actor_id)
        return existing["objectId"]

    name = _text(data.get("name")) or _text(data.get("companyName"))
    if not name:
        return None
    payload = _carrier_changes({}, data, keep_identifiers=False)
    payload["name"] = name
    created = await carriers.insert(payload, actor_id)
    return created["objectId"]
