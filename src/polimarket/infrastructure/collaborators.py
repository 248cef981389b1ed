"""In-memory implementations of the collaborator gateways.

They stand in for the sales, delivery, supplier and authorization
components of the back office.  Each keeps its records in a dict behind a
lock and raises domain exceptions the same way a remote client would
translate error responses.
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import replace

import structlog

from polimarket.domain.exceptions import EntityNotFoundError, ValidationError
from polimarket.domain.gateways import (
    AuthorizationGateway,
    DeliveryGateway,
    DeliveryRecord,
    EventPublisher,
    PurchaseOrder,
    SaleLine,
    SaleRecord,
    SalesGateway,
    SupplierGateway,
    SupplierRecord,
)
from polimarket.domain.model.events import DomainEvent

logger = structlog.get_logger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


class InMemoryAuthorizationGateway(AuthorizationGateway):

    def __init__(self, authorized_sellers: Iterable[str] = ()) -> None:
        self._sellers = frozenset(authorized_sellers)

    def is_authorized(self, seller_id: str) -> bool:
        return seller_id in self._sellers

    def ping(self) -> bool:
        return True


class InMemorySalesGateway(SalesGateway):

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sales: dict[str, SaleRecord] = {}

    def create_sale(
        self,
        seller_id: str,
        customer_id: str | None,
        lines: list[SaleLine],
        reference: str,
    ) -> SaleRecord:
        sale = SaleRecord(
            sale_id=_new_id("SALE"),
            seller_id=seller_id,
            customer_id=customer_id,
            lines=tuple(lines),
        )
        with self._lock:
            self._sales[sale.sale_id] = sale
        logger.info("sale_recorded", sale_id=sale.sale_id, reference=reference, total=sale.total)
        return sale

    def get_sale(self, sale_id: str) -> SaleRecord | None:
        with self._lock:
            return self._sales.get(sale_id)

    def cancel_sale(self, sale_id: str, reason: str) -> None:
        with self._lock:
            sale = self._sales.get(sale_id)
            if sale is None:
                raise EntityNotFoundError(f"Sale '{sale_id}' not found")
            self._sales[sale_id] = replace(sale, status="Cancelled")
        logger.info("sale_cancelled", sale_id=sale_id, reason=reason)

    def ping(self) -> bool:
        return True


class InMemoryDeliveryGateway(DeliveryGateway):

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._deliveries: dict[str, DeliveryRecord] = {}

    def schedule_delivery(self, sale_id: str, address: str) -> DeliveryRecord:
        if not address.strip():
            raise ValidationError("Delivery address is required")
        delivery = DeliveryRecord(
            delivery_id=_new_id("DEL"), sale_id=sale_id, address=address.strip()
        )
        with self._lock:
            self._deliveries[delivery.delivery_id] = delivery
        logger.info("delivery_scheduled", delivery_id=delivery.delivery_id, sale_id=sale_id)
        return delivery

    def get_delivery(self, delivery_id: str) -> DeliveryRecord | None:
        with self._lock:
            return self._deliveries.get(delivery_id)

    def update_status(self, delivery_id: str, status: str) -> DeliveryRecord:
        with self._lock:
            delivery = self._deliveries.get(delivery_id)
            if delivery is None:
                raise EntityNotFoundError(f"Delivery '{delivery_id}' not found")
            delivery = self._deliveries[delivery_id] = replace(delivery, status=status)
        logger.info("delivery_status_changed", delivery_id=delivery_id, status=status)
        return delivery

    def cancel_delivery(self, delivery_id: str, reason: str) -> None:
        self.update_status(delivery_id, "Cancelled")
        logger.info("delivery_cancelled", delivery_id=delivery_id, reason=reason)

    def ping(self) -> bool:
        return True


class InMemorySupplierGateway(SupplierGateway):

    def __init__(self, suppliers: Iterable[SupplierRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._suppliers = {s.supplier_id: s for s in suppliers}
        self._orders: dict[str, PurchaseOrder] = {}

    def get_supplier(self, supplier_id: str) -> SupplierRecord | None:
        with self._lock:
            return self._suppliers.get(supplier_id)

    def create_purchase_order(
        self, supplier_id: str, lines: Mapping[str, int], reference: str
    ) -> PurchaseOrder:
        order = PurchaseOrder(
            purchase_order_id=_new_id("PO"), supplier_id=supplier_id, lines=dict(lines)
        )
        with self._lock:
            if supplier_id not in self._suppliers:
                raise EntityNotFoundError(f"Supplier '{supplier_id}' not found")
            self._orders[order.purchase_order_id] = order
        logger.info(
            "purchase_order_created",
            purchase_order_id=order.purchase_order_id,
            supplier_id=supplier_id,
            reference=reference,
        )
        return order

    def cancel_purchase_order(self, purchase_order_id: str, reason: str) -> None:
        with self._lock:
            order = self._orders.get(purchase_order_id)
            if order is None:
                raise EntityNotFoundError(f"Purchase order '{purchase_order_id}' not found")
            self._orders[purchase_order_id] = replace(order, status="Cancelled")
        logger.info("purchase_order_cancelled", purchase_order_id=purchase_order_id, reason=reason)

    def ping(self) -> bool:
        return True


class LoggingEventPublisher(EventPublisher):
    """Event sink that writes each event to the log and keeps a short history."""

    def __init__(self, history_size: int = 200) -> None:
        self._lock = threading.Lock()
        self._history: deque[DomainEvent] = deque(maxlen=history_size)

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            self._history.append(event)
        logger.info(
            "domain_event",
            event_id=event.event_id,
            event_type=event.event_type,
            source=event.source_component,
            correlation_id=event.correlation_id,
            data=dict(event.data),
        )

    def recent(self, limit: int = 50) -> list[DomainEvent]:
        with self._lock:
            events = list(self._history)
        return events[-limit:] if limit > 0 else []
