"""Workflow: Restock Inventory.

Supplier validation -> purchase order -> inbound stock per product.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from polimarket.application.saga import SagaRun, Undo
from polimarket.application.workflow import Workflow, optional_str, parse_items, require_str
from polimarket.domain.exceptions import EntityNotFoundError, ValidationError
from polimarket.domain.gateways import SupplierGateway
from polimarket.domain.model.events import DomainEvent
from polimarket.domain.model.stock import MovementKind
from polimarket.domain.model.transaction import BusinessTransactionRequest, TransactionType
from polimarket.domain.service.stock_ledger import StockLedger


class RestockInventoryWorkflow(Workflow):

    transaction_type = TransactionType.RESTOCK_INVENTORY

    def __init__(self, ledger: StockLedger, suppliers: SupplierGateway) -> None:
        self._ledger = ledger
        self._suppliers = suppliers

    def run(self, request: BusinessTransactionRequest, saga: SagaRun) -> dict[str, Any]:
        payload = request.payload
        supplier_id = require_str(payload, "supplier_id")
        actor = optional_str(payload, "actor") or request.initiated_by
        lines: dict[str, int] = {}
        for item in parse_items(payload):
            lines[item.product_id] = lines.get(item.product_id, 0) + item.quantity
        ref = request.transaction_id

        supplier = saga.call("validate_supplier", self._suppliers.get_supplier, supplier_id)
        if supplier is None:
            raise EntityNotFoundError(f"Supplier '{supplier_id}' not found")
        if not supplier.is_active:
            raise ValidationError(f"Supplier '{supplier_id}' is not active")

        order = saga.call(
            "create_purchase_order",
            self._suppliers.create_purchase_order,
            supplier_id,
            lines,
            ref,
            undo=Undo(
                "cancel_purchase_order",
                lambda po: self._suppliers.cancel_purchase_order(
                    po.purchase_order_id, f"Transaction {ref} rolled back"
                ),
            ),
        )

        stock_levels: dict[str, int] = {}
        for product_id, qty in lines.items():
            op = saga.run(
                f"inbound_stock:{product_id}",
                self._ledger.update_stock,
                product_id,
                qty,
                MovementKind.INBOUND,
                reason=f"Purchase order {order.purchase_order_id}",
                actor=actor,
                reference=order.purchase_order_id,
            )
            saga.compensate_with(
                f"revert_stock:{product_id}",
                self._ledger.update_stock,
                product_id,
                qty,
                MovementKind.OUTBOUND,
                reason=f"Rollback of purchase order {order.purchase_order_id}",
                actor=actor,
                reference=ref,
            )
            stock_levels[product_id] = op.new

        return {
            "purchase_order_id": order.purchase_order_id,
            "supplier_id": supplier_id,
            "inventory_updated": True,
            "stock_levels": stock_levels,
        }

    def completion_event(
        self, request: BusinessTransactionRequest, results: Mapping[str, Any]
    ) -> DomainEvent:
        return DomainEvent(
            event_type="InventoryRestocked",
            source_component="Inventory",
            data={
                "purchase_order_id": results["purchase_order_id"],
                "supplier_id": results["supplier_id"],
                "stock_levels": dict(results["stock_levels"]),
            },
            correlation_id=request.transaction_id,
        )
