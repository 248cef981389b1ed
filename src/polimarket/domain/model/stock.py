"""StockEntry aggregate: tracks on-hand stock and reservations per product.

Each product has one StockEntry that knows how many units are on hand
and how many of them are held by pending sales.  Entries are created on
first reference and never deleted; zero is a valid terminal state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from polimarket.domain.exceptions import InvalidStockOperationError, ValidationError


class MovementKind(Enum):
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"
    ABSOLUTE_SET = "AbsoluteSet"

    @staticmethod
    def parse(raw: str) -> MovementKind:
        """Accept enum names, values, and the legacy movement tags."""
        key = raw.strip().lower().replace("_", "").replace("-", "")
        try:
            return _MOVEMENT_ALIASES[key]
        except KeyError:
            raise ValidationError(f"Unknown movement kind: {raw!r}") from None


_MOVEMENT_ALIASES = {
    "inbound": MovementKind.INBOUND,
    "entrada": MovementKind.INBOUND,
    "outbound": MovementKind.OUTBOUND,
    "salida": MovementKind.OUTBOUND,
    "absoluteset": MovementKind.ABSOLUTE_SET,
    "ajuste": MovementKind.ABSOLUTE_SET,
    "adjust": MovementKind.ABSOLUTE_SET,
}


@dataclass
class StockEntry:
    """Aggregate root for per-product stock.

    Invariants:
    - ``quantity`` is never negative
    - ``reserved`` stays within ``[0, quantity]``
    - ``available`` is always >= 0

    Every mutator validates first and only then assigns, so a failed
    operation leaves the entry untouched.
    """

    product_id: str
    product_name: str
    quantity: int = 0
    reserved: int = 0

    @property
    def available(self) -> int:
        return self.quantity - self.reserved

    def apply(self, kind: MovementKind, quantity: int) -> int:
        """Apply a movement and return the new on-hand quantity."""
        _require_int(quantity)
        if kind is MovementKind.INBOUND:
            _require_positive(quantity, "Inbound")
            new = self.quantity + quantity
        elif kind is MovementKind.OUTBOUND:
            _require_positive(quantity, "Outbound")
            new = self.quantity - quantity
            if new < 0:
                raise InvalidStockOperationError(
                    f"Insufficient stock for {self.product_id} "
                    f"(need {quantity}, have {self.quantity})"
                )
            if new < self.reserved:
                raise InvalidStockOperationError(
                    f"Cannot remove {quantity} of {self.product_id}: "
                    f"{self.reserved} units are reserved, only {self.available} free"
                )
        else:
            if quantity < 0:
                raise ValidationError("Stock level cannot be negative")
            if quantity < self.reserved:
                raise InvalidStockOperationError(
                    f"Cannot set {self.product_id} to {quantity}: "
                    f"{self.reserved} units are reserved"
                )
            new = quantity
        self.quantity = new
        return new

    def reserve(self, quantity: int) -> None:
        """Hold stock for a pending sale."""
        _require_int(quantity)
        _require_positive(quantity, "Reservation")
        if quantity > self.available:
            raise InvalidStockOperationError(
                f"Insufficient stock to reserve {quantity} of {self.product_id} "
                f"(have {self.available} available)"
            )
        self.reserved += quantity

    def release(self, quantity: int) -> None:
        """Return previously reserved stock to the available pool."""
        _require_int(quantity)
        _require_positive(quantity, "Release")
        if quantity > self.reserved:
            raise InvalidStockOperationError(
                f"Cannot release {quantity} of {self.product_id}: "
                f"only {self.reserved} currently reserved"
            )
        self.reserved -= quantity

    def commit(self, quantity: int) -> None:
        """Permanently deduct reserved stock.

        Both ``quantity`` and ``reserved`` decrease by the same amount.
        """
        _require_int(quantity)
        _require_positive(quantity, "Commit")
        if quantity > self.reserved:
            raise InvalidStockOperationError(
                f"Cannot commit {quantity} of {self.product_id}: "
                f"only {self.reserved} currently reserved"
            )
        self.reserved -= quantity
        self.quantity -= quantity


def _require_int(quantity: object) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(
            f"Quantity must be an integer, got {type(quantity).__name__}"
        )


def _require_positive(quantity: int, what: str) -> None:
    if quantity <= 0:
        raise ValidationError(f"{what} quantity must be positive")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StockMovement:
    """One recorded change to a product's on-hand quantity."""

    product_id: str
    kind: MovementKind
    quantity: int
    previous: int
    new: int
    reason: str = ""
    actor: str = ""
    reference: str | None = None
    movement_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StockOperationResult:
    product_id: str
    previous: int
    new: int
    operation_id: str
    timestamp: datetime


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """Read-only view of a product's stock against a requested quantity."""

    product_id: str
    product_name: str
    current_stock: int
    reserved_stock: int
    available_stock: int
    requested_quantity: int
    is_available: bool
    status: str
    checked_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StockAlert:
    product_id: str
    product_name: str
    current_stock: int
    threshold: int
    alert_type: str
    message: str
