from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Iterable

import httpx

from backoffice.repositories.record_repository import ref_id

logger = logging.getLogger(__name__)

STATUS_PRIORITY = {
    "Delivered": "urgent",
    "Picked up": "high",
    "Dispatched": "normal",
    "On Hold": "normal",
    "Cancelled": "high",
    "Listed": "low",
}


def status_priority(status: str | None) -> str:
    return STATUS_PRIORITY.get(status or "", "normal")


def _unique(values: Iterable[str | None]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def _load_recipients(load: dict[str, Any], *, include_creator: bool = True) -> list[str]:
    recipients: list[str | None] = []
    recipients.extend(load.get("customerEmails") or [])
    recipients.extend(load.get("carrierEmails") or [])
    if include_creator:
        recipients.append(ref_id(load.get("createdBy")))
    return _unique(recipients)


def _load_summary(load: dict[str, Any], status: str | None) -> dict[str, Any]:
    return {
        "id": load.get("objectId"),
        "orderId": load.get("orderId"),
        "status": status,
        "customer": ref_id(load.get("customer")),
        "carrier": ref_id(load.get("carrier")),
    }


class NotificationClient:
    """Best-effort client for the external notification dispatcher.

    Every send returns a ``{"success": ...}`` result and never raises, so a
    failed notification cannot fail the operation that triggered it.
    """

    def __init__(
        self,
        *,
        base_url: str,
        enabled: bool = True,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.enabled = enabled
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def send_notification(self, notification: dict[str, Any]) -> dict[str, Any]:
        if not self.enabled:
            logger.info("Notification service disabled, skipping %s", notification.get("type"))
            return {"success": False, "message": "Notification service is disabled"}
        try:
            response = await self._client.post("/notifications", json=notification)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to send %s notification: %s", notification.get("type"), exc)
            return {"success": False, "error": str(exc), "data": None}
        try:
            data = response.json() if response.text else None
        except ValueError:
            logger.warning("Non-JSON reply to %s notification", notification.get("type"))
            data = None
        return {"success": True, "data": data}

    async def send_load_created(self, load: dict[str, Any], created_by: str | None) -> dict[str, Any]:
        recipients = _load_recipients(load, include_creator=False)
        if not recipients:
            return {"success": False, "message": "No recipients found"}
        order_id = load.get("orderId")
        return await self.send_notification(
            {
                "type": "load_created",
                "title": f"New Load Created: {order_id or load.get('objectId')}",
                "message": f"A new load has been created with order ID: {order_id}",
                "recipients": recipients,
                "data": {
                    "loadId": load.get("objectId"),
                    "orderId": order_id,
                    "createdBy": created_by,
                    "load": _load_summary(load, load.get("status")),
                },
                "priority": "normal",
            }
        )

    async def send_load_status_update(
        self,
        load: dict[str, Any],
        old_status: str | None,
        new_status: str,
        updated_by: str | None,
    ) -> dict[str, Any]:
        recipients = _load_recipients(load)
        if not recipients:
            return {"success": False, "message": "No recipients found"}
        order_id = load.get("orderId")
        return await self.send_notification(
            {
                "type": "load_status_update",
                "title": f"Load Status Updated: {order_id or load.get('objectId')}",
                "message": f'Load status changed from "{old_status}" to "{new_status}"',
                "recipients": recipients,
                "data": {
                    "loadId": load.get("objectId"),
                    "orderId": order_id,
                    "oldStatus": old_status,
                    "newStatus": new_status,
                    "updatedBy": updated_by,
                    "load": _load_summary(load, new_status),
                },
                "priority": status_priority(new_status),
            }
        )

    async def send_load_delivered(
        self,
        load: dict[str, Any],
        receivable: dict[str, Any] | None,
        payable: dict[str, Any] | None,
        updated_by: str | None,
    ) -> dict[str, Any]:
        order_id = load.get("orderId")
        receivable_data = None
        if receivable:
            receivable_data = {
                "id": receivable.get("objectId"),
                "invoiceStatus": receivable.get("invoiceStatus"),
                "daysToPay": receivable.get("daysToPay"),
            }
        return await self.send_notification(
            {
                "type": "load_delivered",
                "title": f"Load Delivered: {order_id}",
                "message": f"Load {order_id} has been delivered. Payment records created.",
                "recipients": _load_recipients(load),
                "data": {
                    "loadId": load.get("objectId"),
                    "orderId": order_id,
                    "updatedBy": updated_by,
                    "deliveryDate": datetime.now(timezone.utc).isoformat(),
                    "load": {
                        "id": load.get("objectId"),
                        "orderId": order_id,
                        "status": "Delivered",
                        "customerRate": load.get("customerRate"),
                        "carrierRate": load.get("carrierRate"),
                    },
                    "paymentReceivable": receivable_data,
                    "paymentPayable": {"id": payable.get("objectId")} if payable else None,
                },
                "priority": "urgent",
            }
        )

    async def send_payment_receivable_created(
        self, receivable: dict[str, Any], load: dict[str, Any]
    ) -> dict[str, Any]:
        order_id = load.get("orderId")
        return await self.send_notification(
            {
                "type": "payment_receivable_created",
                "title": f"Payment Receivable Created: {order_id}",
                "message": f"Invoice pending for load {order_id}. Rate: {load.get('customerRate')}",
                "recipients": _unique([ref_id(load.get("createdBy"))]),
                "data": {
                    "paymentReceivableId": receivable.get("objectId"),
                    "loadId": load.get("objectId"),
                    "orderId": order_id,
                    "customerId": ref_id(receivable.get("customer")),
                    "invoiceStatus": receivable.get("invoiceStatus"),
                    "daysToPay": receivable.get("daysToPay"),
                },
                "priority": "high",
            }
        )

    async def send_payment_payable_created(
        self, payable: dict[str, Any], load: dict[str, Any]
    ) -> dict[str, Any]:
        order_id = load.get("orderId")
        recipients = _unique(
            [ref_id(load.get("createdBy")), *(load.get("carrierEmails") or [])]
        )
        return await self.send_notification(
            {
                "type": "payment_payable_created",
                "title": f"Payment Payable Created: {order_id}",
                "message": f"Payment scheduled for carrier on load {order_id}. Rate: {load.get('carrierRate')}",
                "recipients": recipients,
                "data": {
                    "paymentPayableId": payable.get("objectId"),
                    "loadId": load.get("objectId"),
                    "orderId": order_id,
                    "carrierId": ref_id(payable.get("carrier")),
                },
                "priority": "high",
            }
        )

    async def check_health(self) -> bool:
        if not self.enabled:
            return False
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError as exc:
            logger.warning("Notification service health check failed: %s", exc)
            return False
        return response.status_code == 200
