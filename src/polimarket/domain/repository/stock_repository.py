"""Abstract repository for the StockEntry aggregate and its movement history.

Defined in the domain layer so the ledger never depends on
infrastructure.  Implementations must hand out copies: callers mutate
what they get and persist it with ``save``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from polimarket.domain.model.stock import StockEntry, StockMovement


class StockRepository(ABC):

    @abstractmethod
    def get_by_product_id(self, product_id: str) -> StockEntry | None:
        """Return a copy of the stock entry for a product, or None."""

    @abstractmethod
    def list_all(self) -> list[StockEntry]:
        """Return copies of every stock entry."""

    @abstractmethod
    def save(self, entry: StockEntry) -> None:
        """Persist a new or updated stock entry."""

    @abstractmethod
    def append_movement(self, movement: StockMovement) -> None:
        """Record a stock movement in the append-only history."""

    def save_with_movement(self, entry: StockEntry, movement: StockMovement) -> None:
        """Persist an entry together with the movement that produced it.

        Either both are stored or neither is.  The default suits stores
        whose writes cannot fail halfway.
        """
        self.save(entry)
        self.append_movement(movement)

    @abstractmethod
    def list_movements(self, product_id: str) -> list[StockMovement]:
        """Return the movement history of a product, oldest first."""

    def ping(self) -> bool:
        """Report whether the store is reachable."""
        return True
