"""Thread-safe in-memory implementation of StockRepository.

Entries are stored as private copies and handed out as copies, so a
reader never observes a half-applied mutation of ``quantity`` and
``reserved``.
"""

from __future__ import annotations

import threading
from dataclasses import replace

from polimarket.domain.model.stock import StockEntry, StockMovement
from polimarket.domain.repository.stock_repository import StockRepository


class InMemoryStockRepository(StockRepository):

    def __init__(self, entries: list[StockEntry] | None = None) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, StockEntry] = {}
        self._movements: dict[str, list[StockMovement]] = {}
        for entry in entries or []:
            self._entries[entry.product_id] = replace(entry)

    def get_by_product_id(self, product_id: str) -> StockEntry | None:
        with self._lock:
            entry = self._entries.get(product_id)
            return replace(entry) if entry is not None else None

    def list_all(self) -> list[StockEntry]:
        with self._lock:
            return [replace(e) for e in self._entries.values()]

    def save(self, entry: StockEntry) -> None:
        with self._lock:
            self._entries[entry.product_id] = replace(entry)

    def append_movement(self, movement: StockMovement) -> None:
        with self._lock:
            self._movements.setdefault(movement.product_id, []).append(movement)

    def save_with_movement(self, entry: StockEntry, movement: StockMovement) -> None:
        with self._lock:
            self._entries[entry.product_id] = replace(entry)
            self._movements.setdefault(movement.product_id, []).append(movement)

    def list_movements(self, product_id: str) -> list[StockMovement]:
        with self._lock:
            return list(self._movements.get(product_id, []))
