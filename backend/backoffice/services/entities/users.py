from __future__ import annotations

from typing import Any, Mapping

from werkzeug.security import check_password_hash, generate_password_hash

from backoffice.formatters.users import format_user, format_user_summary
from backoffice.services.record_controller import (
    ControllerConfig,
    Formatter,
    RecordController,
    UpdateResult,
)
from backoffice.services.validation import FieldRule, ValidationRuleSet

ROLES = ("admin", "dispatcher", "carrier", "customer", "accountant", "manager", "driver")
STATUSES = ("active", "suspended")

USER_CONFIG = ControllerConfig(
    entity="User",
    class_name="User",
    rules=ValidationRuleSet(
        create={
            "firstName": FieldRule(required=True, type="string"),
            "lastName": FieldRule(required=True, type="string"),
            "email": FieldRule(required=True, type="email"),
            "password": FieldRule(required=True, type="string"),
            "role": FieldRule(required=True, type="string", enum=ROLES),
            "status": FieldRule(type="string", enum=STATUSES),
        },
        update={
            "firstName": FieldRule(type="string"),
            "lastName": FieldRule(type="string"),
            "email": FieldRule(type="email"),
            "password": FieldRule(type="string"),
            "role": FieldRule(type="string", enum=ROLES),
            "status": FieldRule(type="string", enum=STATUSES),
        },
    ),
    searchable_fields=("firstName", "lastName", "email", "companyName"),
    list_fields=("role", "status"),
    unique_fields=("email",),
    redacted_fields=("password",),
    formatter=Formatter(full=format_user, list=format_user, summary=format_user_summary),
)


def _normalized(data: Mapping[str, Any]) -> dict[str, Any]:
    payload = dict(data)
    if isinstance(payload.get("email"), str):
        payload["email"] = payload["email"].strip().lower()
    uploaded = payload.pop("uploadedFiles", None)
    if uploaded:
        payload["profileImage"] = uploaded[-1] if isinstance(uploaded, list) else uploaded
    return payload


async def create_user(
    users: RecordController, data: Mapping[str, Any], actor_id: str | None
) -> dict[str, Any]:
    payload = _normalized(data)
    payload.setdefault("status", "active")
    created = await users.insert(_hash_password(payload), actor_id)
    return users.format(await users.fetch(created["objectId"]))


def _hash_password(payload: dict[str, Any]) -> dict[str, Any]:
    password = payload.get("password")
    if isinstance(password, str) and password:
        payload["password"] = generate_password_hash(password)
    return payload


async def update_user(
    users: RecordController, user_id: str, data: Mapping[str, Any], actor_id: str | None
) -> UpdateResult:
    payload = _normalized(data)
    password = payload.get("password")
    if isinstance(password, str) and password:
        existing = await users.fetch(user_id)
        stored = existing.get("password")
        if stored and check_password_hash(stored, password):
            payload.pop("password")
        else:
            payload["password"] = generate_password_hash(password)
    return await users.update(user_id, payload, actor_id)


def verify_password(record: Mapping[str, Any], password: str) -> bool:
    stored = record.get("password")
    return bool(stored) and check_password_hash(stored, password)
