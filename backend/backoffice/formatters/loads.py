from __future__ import annotations

from typing import Any

from backoffice.formatters.carriers import format_carrier_summary
from backoffice.formatters.common import (
    Record,
    address,
    as_list,
    count,
    date_value,
    record_id,
    reference,
    timestamps,
)
from backoffice.formatters.customers import format_customer_summary


def _location(value: Any) -> Record | None:
    if not isinstance(value, dict):
        return None
    return {
        **(address(value) or {}),
        "locationName": value.get("locationName"),
        "notes": value.get("notes"),
        "date": date_value(value.get("date")),
    }


def _shipment(value: Any) -> Record | None:
    if not isinstance(value, dict):
        return None
    return {**value, "shipment": as_list(value.get("shipment"))}


def _dates(value: Any) -> Record | None:
    if not isinstance(value, dict):
        return None
    return {key: date_value(item) or item for key, item in value.items()}


def format_load(record: Record) -> Record:
    return {
        "id": record_id(record),
        "orderId": record.get("orderId"),
        "billOfLadingNumber": record.get("billOfLadingNumber"),
        "status": record.get("status"),
        "type": record.get("type"),
        "customer": reference(record.get("customer"), format_customer_summary),
        "customerEmails": as_list(record.get("customerEmails")),
        "customerRate": record.get("customerRate"),
        "carrier": reference(record.get("carrier"), format_carrier_summary),
        "carrierEmails": as_list(record.get("carrierEmails")),
        "carrierRate": record.get("carrierRate"),
        "carrierPhotos": as_list(record.get("carrierPhotos")),
        "pickup": _location(record.get("pickup")),
        "delivery": _location(record.get("delivery")),
        "vehicle": _shipment(record.get("vehicle")),
        "freight": _shipment(record.get("freight")),
        "insurance": record.get("insurance"),
        "dates": _dates(record.get("dates")),
        "tracking": record.get("tracking"),
        "value": record.get("value"),
        "documents": as_list(record.get("documents")),
        **timestamps(record),
    }


def format_load_list(record: Record) -> Record:
    pickup = _location(record.get("pickup")) or {}
    delivery = _location(record.get("delivery")) or {}
    vehicle = record.get("vehicle") if isinstance(record.get("vehicle"), dict) else {}
    return {
        "id": record_id(record),
        "orderId": record.get("orderId"),
        "billOfLadingNumber": record.get("billOfLadingNumber"),
        "status": record.get("status"),
        "customer": reference(record.get("customer"), format_customer_summary),
        "carrier": reference(record.get("carrier"), format_carrier_summary),
        "pickupCity": pickup.get("city"),
        "pickupState": pickup.get("state"),
        "deliveryCity": delivery.get("city"),
        "deliveryState": delivery.get("state"),
        "vehiclesCount": count(vehicle.get("shipment")),
        "documentsCount": count(record.get("documents")),
        "value": record.get("value"),
        "tracking": record.get("tracking"),
        "createdAt": date_value(record.get("createdAt")),
        "updatedAt": date_value(record.get("updatedAt")),
    }


def format_load_summary(record: Record) -> Record:
    customer = record.get("customer")
    carrier = record.get("carrier")
    return {
        "id": record_id(record),
        "orderId": record.get("orderId"),
        "status": record.get("status"),
        "customer": customer.get("companyName") if isinstance(customer, dict) else None,
        "carrier": carrier.get("name") if isinstance(carrier, dict) else None,
        "value": record.get("value"),
        "createdAt": date_value(record.get("createdAt")),
    }
