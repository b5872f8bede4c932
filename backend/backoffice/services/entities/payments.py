from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from backoffice.errors import NotFound
from backoffice.formatters.payments import (
    DEFAULT_DAYS_TO_PAY,
    format_payable,
    format_payable_list,
    format_payable_summary,
    format_receivable,
    format_receivable_list,
    format_receivable_summary,
)
from backoffice.repositories.record_repository import pointer, ref_id
from backoffice.services.record_controller import (
    ControllerConfig,
    Formatter,
    RecordController,
    require_id,
)
from backoffice.services.validation import FieldRule, ValidationRuleSet

logger = logging.getLogger(__name__)

INVOICE_STATUSES = ("pending", "invoiced", "received", "overdue", "cancelled")

RECEIVABLE_CONFIG = ControllerConfig(
    entity="PaymentReceivable",
    class_name="PaymentReceivable",
    rules=ValidationRuleSet(
        create={
            "loadId": FieldRule(required=True, type="string"),
            "customer": FieldRule(required=True, type="string"),
            "daysToPay": FieldRule(type="number", min=1, max=90),
            "invoiceStatus": FieldRule(type="string", enum=INVOICE_STATUSES),
            "invoicedDate": FieldRule(type="date"),
        },
        update={
            "invoiceStatus": FieldRule(type="string", enum=INVOICE_STATUSES),
            "daysToPay": FieldRule(type="number", min=1, max=90),
            "invoicedDate": FieldRule(type="date"),
        },
    ),
    searchable_fields=("invoiceStatus",),
    populate=("customer", "loadId"),
    list_fields=("invoiceStatus",),
    field_types={"daysToPay": "number", "invoicedDate": "date"},
    reference_fields={"customer": "Customer", "loadId": "Load"},
    upload_field="images",
    formatter=Formatter(
        full=format_receivable,
        list=format_receivable_list,
        summary=format_receivable_summary,
    ),
)

PAYABLE_CONFIG = ControllerConfig(
    entity="PaymentPayable",
    class_name="PaymentPayable",
    rules=ValidationRuleSet(
        create={
            "loadId": FieldRule(required=True, type="string"),
            "carrier": FieldRule(required=True, type="string"),
            "bank": FieldRule(type="string"),
            "routing": FieldRule(type="string"),
            "accountNumber": FieldRule(type="string"),
        },
        update={
            "bank": FieldRule(type="string"),
            "routing": FieldRule(type="string"),
            "accountNumber": FieldRule(type="string"),
        },
    ),
    searchable_fields=("bank",),
    populate=("carrier", "loadId"),
    reference_fields={"carrier": "Carrier", "loadId": "Load"},
    upload_field="images",
    formatter=Formatter(
        full=format_payable,
        list=format_payable_list,
        summary=format_payable_summary,
    ),
)


async def mark_receivable_received(
    receivables: RecordController, receivable_id: str, actor_id: str | None
) -> dict[str, Any]:
    record, _ = await receivables.apply_update(
        receivable_id,
        {
            "invoiceStatus": "received",
            "invoicedDate": datetime.now(timezone.utc).isoformat(),
        },
        actor_id,
    )
    return receivables.format(record)


async def _for_load(payments: RecordController, load_id: str) -> dict[str, Any] | None:
    require_id(load_id)
    with payments.store_errors("fetch"):
        page = await payments.repo.find(
            {"loadId": pointer("Load", load_id)},
            limit=1,
            include=list(payments.config.populate),
        )
    return page.items[0] if page.items else None


async def receivable_for_load(receivables: RecordController, load_id: str) -> dict[str, Any]:
    record = await _for_load(receivables, load_id)
    if record is None:
        raise NotFound("Payment receivable not found for this load")
    return receivables.format(record)


async def payable_for_load(payables: RecordController, load_id: str) -> dict[str, Any]:
    record = await _for_load(payables, load_id)
    if record is None:
        raise NotFound("Payment payable not found for this load")
    return payables.format(record)


async def ensure_payments_for_load(
    receivables: RecordController,
    payables: RecordController,
    load: dict[str, Any],
    actor_id: str | None,
) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Create the receivable and payable of a delivered load when missing.

    Each side is created only when the load references the counterparty and
    no record for the load exists yet.
    """
    load_id = load["objectId"]
    customer_id = ref_id(load.get("customer"))
    carrier_id = ref_id(load.get("carrier"))

    receivable = await _for_load(receivables, load_id)
    created_receivable = None
    if receivable is None and customer_id:
        created_receivable = await receivables.insert(
            {
                "loadId": load_id,
                "customer": customer_id,
                "daysToPay": DEFAULT_DAYS_TO_PAY,
                "invoiceStatus": "pending",
            },
            actor_id,
        )

    payable = await _for_load(payables, load_id)
    created_payable = None
    if payable is None and carrier_id:
        created_payable = await payables.insert(
            {"loadId": load_id, "carrier": carrier_id},
            actor_id,
        )

    if created_receivable or created_payable:
        logger.info(
            "Created payments for delivered load %s: receivable=%s payable=%s",
            load_id,
            ref_id(created_receivable),
            ref_id(created_payable),
        )
    return created_receivable, created_payable
