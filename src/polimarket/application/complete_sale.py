"""Workflow: Complete Sale.

Authorization -> availability check -> stock reservation -> sale record
-> stock deduction -> delivery scheduling.

Stock is reserved before the sale is registered so that a concurrent sale
cannot take the same units in between; once the sale record exists the
reservations are committed as outbound movements.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from polimarket.application.saga import SagaRun, Undo
from polimarket.application.workflow import (
    ItemSpec,
    Workflow,
    optional_str,
    parse_items,
    require_str,
)
from polimarket.domain.exceptions import InvalidStockOperationError, ValidationError
from polimarket.domain.gateways import (
    AuthorizationGateway,
    DeliveryGateway,
    SaleLine,
    SalesGateway,
)
from polimarket.domain.model.events import DomainEvent
from polimarket.domain.model.stock import MovementKind
from polimarket.domain.model.transaction import BusinessTransactionRequest, TransactionType
from polimarket.domain.service.stock_ledger import StockLedger


class CompleteSaleWorkflow(Workflow):

    transaction_type = TransactionType.COMPLETE_SALE

    def __init__(
        self,
        ledger: StockLedger,
        authorization: AuthorizationGateway,
        sales: SalesGateway,
        deliveries: DeliveryGateway,
    ) -> None:
        self._ledger = ledger
        self._authorization = authorization
        self._sales = sales
        self._deliveries = deliveries

    def run(self, request: BusinessTransactionRequest, saga: SagaRun) -> dict[str, Any]:
        payload = request.payload
        seller_id = require_str(payload, "seller_id")
        customer_id = optional_str(payload, "customer_id")
        address = optional_str(payload, "delivery_address")
        items = parse_items(payload, with_price=True)
        totals = _quantities_by_product(items)
        ref = request.transaction_id

        authorized = saga.call("authorize_seller", self._authorization.is_authorized, seller_id)
        if not authorized:
            raise ValidationError(f"Seller '{seller_id}' is not authorized to register sales")

        saga.run("check_availability", self._check_availability, totals)

        for product_id, qty in totals.items():
            saga.run(f"reserve_stock:{product_id}", self._ledger.reserve_stock, product_id, qty, ref)
            saga.compensate_with(
                f"release_stock:{product_id}", self._ledger.release_stock, product_id, qty, ref
            )

        lines = [SaleLine(i.product_id, i.quantity, i.unit_price) for i in items]
        rollback = f"Transaction {ref} rolled back"
        sale = saga.call(
            "create_sale",
            self._sales.create_sale,
            seller_id,
            customer_id,
            lines,
            ref,
            undo=Undo("cancel_sale", lambda s: self._sales.cancel_sale(s.sale_id, rollback)),
        )

        stock_levels: dict[str, int] = {}
        for product_id, qty in totals.items():
            op = saga.run(
                f"deduct_stock:{product_id}",
                self._ledger.commit_reservation,
                product_id,
                qty,
                reason=f"Sale {sale.sale_id}",
                actor=seller_id,
                reference=sale.sale_id,
            )
            saga.discard_compensation(f"release_stock:{product_id}")
            saga.compensate_with(
                f"restore_stock:{product_id}",
                self._ledger.update_stock,
                product_id,
                qty,
                MovementKind.INBOUND,
                reason=f"Rollback of sale {sale.sale_id}",
                reference=ref,
            )
            stock_levels[product_id] = op.new

        delivery_id = None
        if address:
            delivery = saga.call(
                "schedule_delivery",
                self._deliveries.schedule_delivery,
                sale.sale_id,
                address,
                undo=Undo(
                    "cancel_delivery",
                    lambda d: self._deliveries.cancel_delivery(d.delivery_id, rollback),
                ),
            )
            delivery_id = delivery.delivery_id

        return {
            "sale_id": sale.sale_id,
            "total": sale.total,
            "inventory_updated": True,
            "stock_levels": stock_levels,
            "delivery_scheduled": delivery_id is not None,
            "delivery_id": delivery_id,
        }

    def completion_event(
        self, request: BusinessTransactionRequest, results: Mapping[str, Any]
    ) -> DomainEvent:
        return DomainEvent(
            event_type="SaleCompleted",
            source_component="Sales",
            data={
                "sale_id": results["sale_id"],
                "seller_id": request.payload.get("seller_id"),
                "total": results["total"],
                "delivery_id": results["delivery_id"],
            },
            correlation_id=request.transaction_id,
        )

    # --- Internal helpers -----------------------------------------------------

    def _check_availability(self, totals: dict[str, int]) -> None:
        shortages = []
        for product_id, qty in totals.items():
            snapshot = self._ledger.check_availability(product_id, qty)
            if not snapshot.is_available:
                shortages.append(
                    f"{product_id} (requested {qty}, available {snapshot.available_stock})"
                )
        if shortages:
            raise InvalidStockOperationError("Insufficient stock for " + ", ".join(shortages))


def _quantities_by_product(items: list[ItemSpec]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals
