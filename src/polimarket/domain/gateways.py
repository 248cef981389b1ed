"""Abstract gateways to the collaborators outside the core.

Sales records, delivery scheduling, supplier persistence and seller
authorization live in other components.  The core only talks to them
through these request/response interfaces; a gateway signals failure by
raising a DomainException (usually DependencyFailureError).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field

from polimarket.domain.model.events import DomainEvent


@dataclass(frozen=True)
class SaleLine:
    product_id: str
    quantity: int
    unit_price: float = 0.0

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class SaleRecord:
    sale_id: str
    seller_id: str
    customer_id: str | None
    lines: tuple[SaleLine, ...]
    status: str = "Completed"

    @property
    def total(self) -> float:
        return round(sum(line.line_total for line in self.lines), 2)


@dataclass(frozen=True)
class DeliveryRecord:
    delivery_id: str
    sale_id: str
    address: str
    status: str = "Scheduled"


@dataclass(frozen=True)
class SupplierRecord:
    supplier_id: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class PurchaseOrder:
    purchase_order_id: str
    supplier_id: str
    lines: Mapping[str, int] = field(default_factory=dict)
    status: str = "Created"


class AuthorizationGateway(ABC):

    @abstractmethod
    def is_authorized(self, seller_id: str) -> bool:
        """Return True if the seller may register sales."""

    @abstractmethod
    def ping(self) -> bool:
        """Report whether the component is reachable."""


class SalesGateway(ABC):

    @abstractmethod
    def create_sale(
        self,
        seller_id: str,
        customer_id: str | None,
        lines: list[SaleLine],
        reference: str,
    ) -> SaleRecord:
        """Register a sale and return the stored record."""

    @abstractmethod
    def get_sale(self, sale_id: str) -> SaleRecord | None:
        """Return a sale by its ID, or None if not found."""

    @abstractmethod
    def cancel_sale(self, sale_id: str, reason: str) -> None:
        """Mark a sale as cancelled."""

    @abstractmethod
    def ping(self) -> bool:
        """Report whether the component is reachable."""


class DeliveryGateway(ABC):

    @abstractmethod
    def schedule_delivery(self, sale_id: str, address: str) -> DeliveryRecord:
        """Schedule a delivery for a sale."""

    @abstractmethod
    def get_delivery(self, delivery_id: str) -> DeliveryRecord | None:
        """Return a delivery by its ID, or None if not found."""

    @abstractmethod
    def update_status(self, delivery_id: str, status: str) -> DeliveryRecord:
        """Change the status of a delivery and return the updated record."""

    @abstractmethod
    def cancel_delivery(self, delivery_id: str, reason: str) -> None:
        """Cancel a scheduled delivery."""

    @abstractmethod
    def ping(self) -> bool:
        """Report whether the component is reachable."""


class SupplierGateway(ABC):

    @abstractmethod
    def get_supplier(self, supplier_id: str) -> SupplierRecord | None:
        """Return a supplier by its ID, or None if not found."""

    @abstractmethod
    def create_purchase_order(
        self, supplier_id: str, lines: Mapping[str, int], reference: str
    ) -> PurchaseOrder:
        """Register a purchase order with a supplier."""

    @abstractmethod
    def cancel_purchase_order(self, purchase_order_id: str, reason: str) -> None:
        """Cancel a purchase order."""

    @abstractmethod
    def ping(self) -> bool:
        """Report whether the component is reachable."""


class EventPublisher(ABC):

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        """Hand an event to the outside world. Fire-and-forget."""

    def recent(self, limit: int = 50) -> list[DomainEvent]:
        """Return the most recently published events, newest last."""
        return []
