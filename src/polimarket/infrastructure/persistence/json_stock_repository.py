"""JSON-file-backed implementation of StockRepository.

Stock entries and the movement history live in two files under the data
directory.  A process-local lock guards each read-modify-write cycle.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path

from polimarket.domain.model.stock import MovementKind, StockEntry, StockMovement
from polimarket.domain.repository.stock_repository import StockRepository


class JsonStockRepository(StockRepository):

    def __init__(self, stock_path: Path, movements_path: Path) -> None:
        self._stock_path = stock_path
        self._movements_path = movements_path
        self._lock = threading.Lock()
        self._ensure_file(self._stock_path)
        self._ensure_file(self._movements_path)

    # --- StockRepository interface --------------------------------------------

    def get_by_product_id(self, product_id: str) -> StockEntry | None:
        with self._lock:
            for raw in self._load_raw(self._stock_path):
                if raw["product_id"] == product_id:
                    return self._entry_to_domain(raw)
        return None

    def list_all(self) -> list[StockEntry]:
        with self._lock:
            return [self._entry_to_domain(raw) for raw in self._load_raw(self._stock_path)]

    def save(self, entry: StockEntry) -> None:
        with self._lock:
            records = self._upsert(self._load_raw(self._stock_path), entry)
            self._persist_raw(self._stock_path, records)

    def append_movement(self, movement: StockMovement) -> None:
        with self._lock:
            records = self._load_raw(self._movements_path)
            records.append(self._movement_to_raw(movement))
            self._persist_raw(self._movements_path, records)

    def save_with_movement(self, entry: StockEntry, movement: StockMovement) -> None:
        with self._lock:
            movements = self._load_raw(self._movements_path)
            records = self._upsert(self._load_raw(self._stock_path), entry)
            self._persist_raw(self._movements_path, [*movements, self._movement_to_raw(movement)])
            try:
                self._persist_raw(self._stock_path, records)
            except OSError:
                # Drop the movement again so the history matches the stock.
                self._persist_raw(self._movements_path, movements)
                raise

    def list_movements(self, product_id: str) -> list[StockMovement]:
        with self._lock:
            return [
                self._movement_to_domain(raw)
                for raw in self._load_raw(self._movements_path)
                if raw["product_id"] == product_id
            ]

    def ping(self) -> bool:
        return self._stock_path.exists()

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _entry_to_raw(entry: StockEntry) -> dict:
        return {
            "product_id": entry.product_id,
            "product_name": entry.product_name,
            "quantity": entry.quantity,
            "reserved": entry.reserved,
        }

    @staticmethod
    def _entry_to_domain(raw: dict) -> StockEntry:
        return StockEntry(
            product_id=raw["product_id"],
            product_name=raw["product_name"],
            quantity=raw["quantity"],
            reserved=raw.get("reserved", 0),
        )

    @staticmethod
    def _movement_to_raw(movement: StockMovement) -> dict:
        return {
            "movement_id": movement.movement_id,
            "product_id": movement.product_id,
            "kind": movement.kind.value,
            "quantity": movement.quantity,
            "previous": movement.previous,
            "new": movement.new,
            "reason": movement.reason,
            "actor": movement.actor,
            "reference": movement.reference,
            "timestamp": movement.timestamp.isoformat(),
        }

    @staticmethod
    def _movement_to_domain(raw: dict) -> StockMovement:
        return StockMovement(
            product_id=raw["product_id"],
            kind=MovementKind(raw["kind"]),
            quantity=raw["quantity"],
            previous=raw["previous"],
            new=raw["new"],
            reason=raw.get("reason", ""),
            actor=raw.get("actor", ""),
            reference=raw.get("reference"),
            movement_id=raw["movement_id"],
            timestamp=datetime.fromisoformat(raw["timestamp"]),
        )

    def _upsert(self, records: list[dict], entry: StockEntry) -> list[dict]:
        for i, raw in enumerate(records):
            if raw["product_id"] == entry.product_id:
                records[i] = self._entry_to_raw(entry)
                return records
        records.append(self._entry_to_raw(entry))
        return records

    # --- File helpers ---------------------------------------------------------

    @staticmethod
    def _load_raw(path: Path) -> list[dict]:
        return json.loads(path.read_text(encoding="utf-8"))

    @staticmethod
    def _persist_raw(path: Path, records: list[dict]) -> None:
        path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")

    @staticmethod
    def _ensure_file(path: Path) -> None:
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("[]", encoding="utf-8")
