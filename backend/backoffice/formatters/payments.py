from __future__ import annotations

from backoffice.formatters.carriers import format_carrier_summary
from backoffice.formatters.common import (
    Record,
    as_list,
    count,
    date_value,
    is_expanded,
    record_id,
    reference,
    reference_id,
)
from backoffice.formatters.customers import format_customer_summary

DEFAULT_DAYS_TO_PAY = 30


def _load_brief(record: Record) -> Record:
    return {
        "id": record_id(record),
        "orderId": record.get("orderId"),
        "status": record.get("status"),
    }


def _load_fields(record: Record) -> Record:
    load = record.get("loadId")
    return {
        "loadId": reference_id(load),
        "load": _load_brief(load) if is_expanded(load) else None,
    }


def format_receivable(record: Record) -> Record:
    return {
        "id": record_id(record),
        **_load_fields(record),
        "customer": reference(record.get("customer"), format_customer_summary),
        "invoicedDate": date_value(record.get("invoicedDate")),
        "daysToPay": record.get("daysToPay") or DEFAULT_DAYS_TO_PAY,
        "invoiceStatus": record.get("invoiceStatus") or "pending",
        "images": as_list(record.get("images")),
        "pdfs": as_list(record.get("pdfs")),
        "createdAt": date_value(record.get("createdAt")),
        "updatedAt": date_value(record.get("updatedAt")),
    }


def format_receivable_list(record: Record) -> Record:
    return {
        "id": record_id(record),
        **_load_fields(record),
        "customer": reference(record.get("customer"), format_customer_summary),
        "invoicedDate": date_value(record.get("invoicedDate")),
        "daysToPay": record.get("daysToPay") or DEFAULT_DAYS_TO_PAY,
        "invoiceStatus": record.get("invoiceStatus") or "pending",
        "imagesCount": count(record.get("images")),
        "pdfsCount": count(record.get("pdfs")),
        "createdAt": date_value(record.get("createdAt")),
    }


def format_receivable_summary(record: Record) -> Record:
    return {
        "id": record_id(record),
        "loadId": reference_id(record.get("loadId")),
        "invoiceStatus": record.get("invoiceStatus") or "pending",
        "daysToPay": record.get("daysToPay") or DEFAULT_DAYS_TO_PAY,
    }


def _masked(account_number: str | None) -> str | None:
    if not account_number:
        return None
    return f"****{account_number[-4:]}"


def format_payable(record: Record) -> Record:
    return {
        "id": record_id(record),
        **_load_fields(record),
        "carrier": reference(record.get("carrier"), format_carrier_summary),
        "bank": record.get("bank"),
        "routing": record.get("routing"),
        "accountNumber": record.get("accountNumber"),
        "images": as_list(record.get("images")),
        "pdfs": as_list(record.get("pdfs")),
        "createdAt": date_value(record.get("createdAt")),
        "updatedAt": date_value(record.get("updatedAt")),
    }


def format_payable_list(record: Record) -> Record:
    return {
        "id": record_id(record),
        **_load_fields(record),
        "carrier": reference(record.get("carrier"), format_carrier_summary),
        "bank": record.get("bank"),
        "accountNumber": _masked(record.get("accountNumber")),
        "imagesCount": count(record.get("images")),
        "pdfsCount": count(record.get("pdfs")),
        "createdAt": date_value(record.get("createdAt")),
    }


def format_payable_summary(record: Record) -> Record:
    return {
        "id": record_id(record),
        "loadId": reference_id(record.get("loadId")),
        "carrier": reference_id(record.get("carrier")),
        "bank": record.get("bank"),
    }
