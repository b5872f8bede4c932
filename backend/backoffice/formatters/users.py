from __future__ import annotations

from backoffice.formatters.common import Record, date_value, record_id


def format_user(record: Record) -> Record:
    return {
        "id": record_id(record),
        "email": record.get("email"),
        "role": record.get("role"),
        "firstName": record.get("firstName"),
        "lastName": record.get("lastName"),
        "companyName": record.get("companyName"),
        "status": record.get("status", "active"),
        "profileImage": record.get("profileImage"),
        "createdAt": date_value(record.get("createdAt")),
        "updatedAt": date_value(record.get("updatedAt")),
    }


def format_user_summary(record: Record) -> Record:
    first = record.get("firstName") or ""
    last = record.get("lastName") or ""
    return {
        "id": record_id(record),
        "fullName": f"{first} {last}".strip() or None,
        "email": record.get("email"),
        "role": record.get("role"),
    }
