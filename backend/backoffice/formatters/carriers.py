from __future__ import annotations

from backoffice.formatters.common import Record, address, as_list, count, date_value, record_id, timestamps


def format_carrier(record: Record) -> Record:
    return {
        "id": record_id(record),
        "name": record.get("name"),
        "companyName": record.get("companyName"),
        "phoneNumber": record.get("phoneNumber"),
        "email": record.get("email"),
        "mcNumber": record.get("mcNumber"),
        "dotNumber": record.get("dotNumber"),
        "address": address(record.get("address")),
        "emails": as_list(record.get("emails")),
        "photos": as_list(record.get("photos")),
        "equipmentType": record.get("equipmentType"),
        "size": record.get("size"),
        "capabilities": as_list(record.get("capabilities")),
        "certifications": as_list(record.get("certifications")),
        "loads": as_list(record.get("loads")),
        "deletedAt": date_value(record.get("deletedAt")),
        **timestamps(record),
    }


def format_carrier_list(record: Record) -> Record:
    return {
        "id": record_id(record),
        "name": record.get("name"),
        "companyName": record.get("companyName"),
        "mcNumber": record.get("mcNumber"),
        "dotNumber": record.get("dotNumber"),
        "equipmentType": record.get("equipmentType"),
        "size": record.get("size"),
        "photosCount": count(record.get("photos")),
        "loadsCount": count(record.get("loads")),
        "createdAt": date_value(record.get("createdAt")),
        "updatedAt": date_value(record.get("updatedAt")),
    }


def format_carrier_summary(record: Record) -> Record:
    return {
        "id": record_id(record),
        "name": record.get("name"),
        "companyName": record.get("companyName"),
        "email": record.get("email"),
        "phoneNumber": record.get("phoneNumber"),
        "mcNumber": record.get("mcNumber"),
        "dotNumber": record.get("dotNumber"),
    }
