"""Base class for business transaction workflows and payload parsing.

Payloads arrive as opaque key/value maps from the API or CLI.  The
helpers here turn them into typed values and raise ValidationError for
anything malformed, before any step has run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from polimarket.application.saga import SagaRun
from polimarket.domain.exceptions import ValidationError
from polimarket.domain.model.events import DomainEvent
from polimarket.domain.model.transaction import BusinessTransactionRequest, TransactionType


class Workflow(ABC):

    transaction_type: TransactionType

    @abstractmethod
    def run(self, request: BusinessTransactionRequest, saga: SagaRun) -> dict[str, Any]:
        """Execute every step through the saga and return the results map."""

    @abstractmethod
    def completion_event(
        self, request: BusinessTransactionRequest, results: Mapping[str, Any]
    ) -> DomainEvent:
        """Describe a successful run for the event publisher."""


@dataclass(frozen=True)
class ItemSpec:
    product_id: str
    quantity: int
    unit_price: float = 0.0


def require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{key}' is required")
    return value.strip()


def optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string")
    return value.strip() or None


def parse_items(payload: Mapping[str, Any], with_price: bool = False) -> list[ItemSpec]:
    """Parse ``[{product_id, quantity, unit_price?}, ...]`` into ItemSpecs."""
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("'items' must be a non-empty list")

    items: list[ItemSpec] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, Mapping):
            raise ValidationError(f"Item #{index + 1} must be an object")
        product_id = raw.get("product_id")
        if not isinstance(product_id, str) or not product_id.strip():
            raise ValidationError(f"Item #{index + 1} is missing 'product_id'")
        quantity = raw.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                f"Item #{index + 1} ({product_id}) needs a positive integer quantity"
            )
        unit_price = 0.0
        if with_price:
            price = raw.get("unit_price", 0.0)
            if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
                raise ValidationError(
                    f"Item #{index + 1} ({product_id}) has an invalid unit price"
                )
            unit_price = float(price)
        items.append(ItemSpec(product_id.strip(), quantity, unit_price))
    return items
