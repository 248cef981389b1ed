"""Workflow: Process Delivery.

Loads an existing delivery (or schedules one for a sale) and moves it to
the requested status.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from polimarket.application.saga import SagaRun, Undo
from polimarket.application.workflow import Workflow, optional_str, require_str
from polimarket.domain.exceptions import EntityNotFoundError, ValidationError
from polimarket.domain.gateways import DeliveryGateway, DeliveryRecord, SalesGateway
from polimarket.domain.model.events import DomainEvent
from polimarket.domain.model.transaction import BusinessTransactionRequest, TransactionType

DELIVERY_STATUSES = ("Scheduled", "InTransit", "Delivered", "Cancelled")
FINAL_STATUSES = ("Delivered", "Cancelled")
DEFAULT_TARGET_STATUS = "InTransit"


class ProcessDeliveryWorkflow(Workflow):

    transaction_type = TransactionType.PROCESS_DELIVERY

    def __init__(self, deliveries: DeliveryGateway, sales: SalesGateway) -> None:
        self._deliveries = deliveries
        self._sales = sales

    def run(self, request: BusinessTransactionRequest, saga: SagaRun) -> dict[str, Any]:
        payload = request.payload
        target = optional_str(payload, "status") or DEFAULT_TARGET_STATUS
        if target not in DELIVERY_STATUSES:
            raise ValidationError(
                f"Unknown delivery status '{target}' "
                f"(expected one of {', '.join(DELIVERY_STATUSES)})"
            )
        ref = request.transaction_id

        delivery = self._resolve_delivery(payload, saga, ref)
        previous = delivery.status
        if previous in FINAL_STATUSES:
            raise ValidationError(
                f"Delivery {delivery.delivery_id} is already {previous}"
            )
        if previous == target:
            raise ValidationError(f"Delivery {delivery.delivery_id} is already {target}")

        updated = saga.call(
            "update_delivery_status",
            self._deliveries.update_status,
            delivery.delivery_id,
            target,
            undo=Undo(
                "restore_delivery_status",
                lambda d: self._deliveries.update_status(d.delivery_id, previous),
            ),
        )

        return {
            "delivery_id": updated.delivery_id,
            "sale_id": updated.sale_id,
            "previous_status": previous,
            "status": updated.status,
        }

    def completion_event(
        self, request: BusinessTransactionRequest, results: Mapping[str, Any]
    ) -> DomainEvent:
        return DomainEvent(
            event_type="DeliveryProcessed",
            source_component="Delivery",
            data={
                "delivery_id": results["delivery_id"],
                "previous_status": results["previous_status"],
                "status": results["status"],
            },
            correlation_id=request.transaction_id,
        )

    def _resolve_delivery(
        self, payload: Mapping[str, Any], saga: SagaRun, ref: str
    ) -> DeliveryRecord:
        delivery_id = optional_str(payload, "delivery_id")
        if delivery_id:
            delivery = saga.call("load_delivery", self._deliveries.get_delivery, delivery_id)
            if delivery is None:
                raise EntityNotFoundError(f"Delivery '{delivery_id}' not found")
            return delivery

        sale_id = optional_str(payload, "sale_id")
        if not sale_id:
            raise ValidationError("Either 'delivery_id' or 'sale_id' is required")
        address = require_str(payload, "delivery_address")

        sale = saga.call("load_sale", self._sales.get_sale, sale_id)
        if sale is None:
            raise EntityNotFoundError(f"Sale '{sale_id}' not found")

        return saga.call(
            "schedule_delivery",
            self._deliveries.schedule_delivery,
            sale.sale_id,
            address,
            undo=Undo(
                "cancel_delivery",
                lambda d: self._deliveries.cancel_delivery(
                    d.delivery_id, f"Transaction {ref} rolled back"
                ),
            ),
        )
