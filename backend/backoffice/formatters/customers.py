from __future__ import annotations

from backoffice.formatters.common import Record, address, as_list, count, date_value, record_id, timestamps


def format_customer(record: Record) -> Record:
    return {
        "id": record_id(record),
        "companyName": record.get("companyName"),
        "customerAddress": address(record.get("customerAddress")),
        "emails": as_list(record.get("emails")),
        "phoneNumber": record.get("phoneNumber"),
        "loads": as_list(record.get("loads")),
        "deletedAt": date_value(record.get("deletedAt")),
        **timestamps(record),
    }


def format_customer_list(record: Record) -> Record:
    customer_address = address(record.get("customerAddress")) or {}
    return {
        "id": record_id(record),
        "companyName": record.get("companyName"),
        "city": customer_address.get("city"),
        "state": customer_address.get("state"),
        "emails": as_list(record.get("emails")),
        "phoneNumber": record.get("phoneNumber"),
        "loadsCount": count(record.get("loads")),
        "createdAt": date_value(record.get("createdAt")),
        "updatedAt": date_value(record.get("updatedAt")),
    }


def format_customer_summary(record: Record) -> Record:
    return {
        "id": record_id(record),
        "companyName": record.get("companyName"),
        "emails": as_list(record.get("emails")),
        "phoneNumber": record.get("phoneNumber"),
    }
