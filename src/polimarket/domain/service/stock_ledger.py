"""Domain service: Stock Ledger.

The ledger is the authoritative record of per-product stock.  It owns the
rules for inbound, outbound and absolute-set movements, reservations and
low-stock alerts, and it serializes mutations per product id so that two
concurrent requests never both observe the same "old" quantity.

Every mutation follows the same two-phase shape:
  Phase 1: load a copy and validate the movement against it.  Fails
            fast, before anything is persisted.
  Phase 2: persist the entry and its movement in one repository write.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import structlog

from polimarket.domain.exceptions import (
    DomainException,
    OperationTimeoutError,
    ValidationError,
)
from polimarket.domain.model.stock import (
    AvailabilitySnapshot,
    MovementKind,
    StockAlert,
    StockEntry,
    StockMovement,
    StockOperationResult,
)
from polimarket.domain.repository.stock_repository import StockRepository

logger = structlog.get_logger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 10


class StockLedger:

    def __init__(
        self,
        stock_repo: StockRepository,
        lock_timeout: float = 5.0,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ) -> None:
        self._stock_repo = stock_repo
        self._lock_timeout = lock_timeout
        self._low_stock_threshold = low_stock_threshold
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def low_stock_threshold(self) -> int:
        return self._low_stock_threshold

    # --- Queries --------------------------------------------------------------

    def check_availability(
        self, product_id: str, required_quantity: int
    ) -> AvailabilitySnapshot:
        """Compare the free stock of a product with a requested quantity.

        Unknown products report zero stock rather than failing.
        """
        _require_product_id(product_id)
        if isinstance(required_quantity, bool) or not isinstance(required_quantity, int):
            raise ValidationError("Required quantity must be an integer")
        if required_quantity < 0:
            raise ValidationError("Required quantity cannot be negative")

        entry = self._get_or_new(product_id)
        is_available = entry.available >= required_quantity
        logger.debug(
            "availability_checked",
            product_id=product_id,
            requested=required_quantity,
            available=entry.available,
        )
        return _snapshot(
            entry,
            requested=required_quantity,
            is_available=is_available,
            status="Available" if is_available else "Insufficient stock",
        )

    def get_current_stock(self, product_id: str) -> AvailabilitySnapshot:
        _require_product_id(product_id)
        entry = self._get_or_new(product_id)
        in_stock = entry.available > 0
        return _snapshot(
            entry,
            requested=0,
            is_available=in_stock,
            status="Available" if in_stock else "Out of stock",
        )

    def list_stock(self) -> list[StockEntry]:
        return sorted(self._stock_repo.list_all(), key=lambda e: e.product_id)

    def list_movements(
        self,
        product_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[StockMovement]:
        """Return the movement history of a product within an inclusive window."""
        _require_product_id(product_id)
        if start is not None and end is not None and start > end:
            raise ValidationError("Start of the period must not be after its end")
        return [
            m
            for m in self._stock_repo.list_movements(product_id)
            if (start is None or m.timestamp >= start)
            and (end is None or m.timestamp <= end)
        ]

    def generate_alerts(self, threshold: int | None = None) -> list[StockAlert]:
        """One alert per product strictly below the threshold, lowest stock first."""
        if threshold is None:
            threshold = self._low_stock_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
            raise ValidationError("Alert threshold must be a non-negative integer")

        low = [e for e in self._stock_repo.list_all() if e.quantity < threshold]
        low.sort(key=lambda e: (e.quantity, e.product_id))
        alerts = [_alert(e, threshold) for e in low]
        logger.info("stock_alerts_generated", threshold=threshold, count=len(alerts))
        return alerts

    # --- Mutations ------------------------------------------------------------

    def update_stock(
        self,
        product_id: str,
        quantity: int,
        kind: MovementKind | str,
        reason: str = "",
        actor: str = "",
        reference: str | None = None,
    ) -> StockOperationResult:
        """Apply an inbound, outbound or absolute-set movement.

        Raises InvalidStockOperationError when the movement would drive the
        stock negative or below the reserved units; nothing is written then.
        """
        _require_product_id(product_id)
        if isinstance(kind, str):
            kind = MovementKind.parse(kind)

        with self._serialized(product_id):
            entry = self._get_or_new(product_id)
            previous = entry.quantity
            try:
                new = entry.apply(kind, quantity)
            except DomainException as exc:
                logger.warning(
                    "stock_update_rejected",
                    product_id=product_id,
                    kind=kind.value,
                    quantity=quantity,
                    current=previous,
                    error=str(exc),
                )
                raise
            movement = StockMovement(
                product_id=product_id,
                kind=kind,
                quantity=quantity,
                previous=previous,
                new=new,
                reason=reason,
                actor=actor,
                reference=reference,
            )
            self._stock_repo.save_with_movement(entry, movement)

        logger.info(
            "stock_updated",
            product_id=product_id,
            kind=kind.value,
            previous=previous,
            new=new,
            movement_id=movement.movement_id,
        )
        return StockOperationResult(
            product_id=product_id,
            previous=previous,
            new=new,
            operation_id=movement.movement_id,
            timestamp=movement.timestamp,
        )

    def adjust_stock(
        self, product_id: str, new_quantity: int, reason: str, actor: str
    ) -> StockOperationResult:
        """Set the stock of a product to an absolute level (stock count)."""
        return self.update_stock(
            product_id, new_quantity, MovementKind.ABSOLUTE_SET, reason=reason, actor=actor
        )

    def reserve_stock(
        self, product_id: str, quantity: int, reference: str
    ) -> AvailabilitySnapshot:
        """Hold free stock for a pending sale without changing the on-hand level."""
        _require_product_id(product_id)
        with self._serialized(product_id):
            entry = self._get_or_new(product_id)
            entry.reserve(quantity)
            self._stock_repo.save(entry)
        logger.info(
            "stock_reserved",
            product_id=product_id,
            quantity=quantity,
            reserved=entry.reserved,
            reference=reference,
        )
        return _snapshot(entry, requested=quantity, is_available=True, status="Reserved")

    def release_stock(
        self, product_id: str, quantity: int, reference: str
    ) -> AvailabilitySnapshot:
        _require_product_id(product_id)
        with self._serialized(product_id):
            entry = self._get_or_new(product_id)
            entry.release(quantity)
            self._stock_repo.save(entry)
        logger.info(
            "stock_released",
            product_id=product_id,
            quantity=quantity,
            reserved=entry.reserved,
            reference=reference,
        )
        return _snapshot(
            entry, requested=quantity, is_available=entry.available > 0, status="Released"
        )

    def commit_reservation(
        self,
        product_id: str,
        quantity: int,
        reason: str = "",
        actor: str = "",
        reference: str | None = None,
    ) -> StockOperationResult:
        """Turn reserved units into an outbound movement."""
        _require_product_id(product_id)
        with self._serialized(product_id):
            entry = self._get_or_new(product_id)
            previous = entry.quantity
            entry.commit(quantity)
            movement = StockMovement(
                product_id=product_id,
                kind=MovementKind.OUTBOUND,
                quantity=quantity,
                previous=previous,
                new=entry.quantity,
                reason=reason,
                actor=actor,
                reference=reference,
            )
            self._stock_repo.save_with_movement(entry, movement)

        logger.info(
            "reservation_committed",
            product_id=product_id,
            previous=previous,
            new=entry.quantity,
            reference=reference,
        )
        return StockOperationResult(
            product_id=product_id,
            previous=previous,
            new=entry.quantity,
            operation_id=movement.movement_id,
            timestamp=movement.timestamp,
        )

    def ping(self) -> bool:
        return self._stock_repo.ping()

    # --- Internal helpers -----------------------------------------------------

    def _get_or_new(self, product_id: str) -> StockEntry:
        entry = self._stock_repo.get_by_product_id(product_id)
        if entry is None:
            return StockEntry(product_id=product_id, product_name=_default_name(product_id))
        return entry

    def _lock_for(self, product_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(product_id)
            if lock is None:
                lock = self._locks[product_id] = threading.Lock()
            return lock

    @contextmanager
    def _serialized(self, product_id: str) -> Iterator[None]:
        lock = self._lock_for(product_id)
        if not lock.acquire(timeout=self._lock_timeout):
            raise OperationTimeoutError(
                f"Timed out after {self._lock_timeout}s waiting for stock of {product_id}"
            )
        try:
            yield
        finally:
            lock.release()


def _require_product_id(product_id: str) -> None:
    if not isinstance(product_id, str) or not product_id.strip():
        raise ValidationError("Product ID is required")


def _default_name(product_id: str) -> str:
    return f"Product {product_id}"


def _snapshot(
    entry: StockEntry, requested: int, is_available: bool, status: str
) -> AvailabilitySnapshot:
    return AvailabilitySnapshot(
        product_id=entry.product_id,
        product_name=entry.product_name,
        current_stock=entry.quantity,
        reserved_stock=entry.reserved,
        available_stock=entry.available,
        requested_quantity=requested,
        is_available=is_available,
        status=status,
    )


def _alert(entry: StockEntry, threshold: int) -> StockAlert:
    if entry.quantity == 0:
        alert_type = "OutOfStock"
        message = f"Out of stock for product {entry.product_id}"
    else:
        alert_type = "LowStock"
        message = f"Low stock for product {entry.product_id}: {entry.quantity} units"
    return StockAlert(
        product_id=entry.product_id,
        product_name=entry.product_name,
        current_stock=entry.quantity,
        threshold=threshold,
        alert_type=alert_type,
        message=message,
    )
