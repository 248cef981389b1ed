"""Business transaction model.

A business transaction is a typed request that the orchestrator turns
into a fixed sequence of steps.  The result is built once, at the end of
the run, and is immutable from then on.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any

from polimarket.domain.exceptions import ValidationError


class TransactionType(Enum):
    COMPLETE_SALE = "complete_sale"
    RESTOCK_INVENTORY = "restock_inventory"
    PROCESS_DELIVERY = "process_delivery"

    @staticmethod
    def parse(raw: str) -> TransactionType:
        """Resolve a type tag such as ``complete_sale`` or ``CompleteSale``."""
        key = (raw or "").strip().lower().replace("_", "").replace("-", "")
        for member in TransactionType:
            if member.value.replace("_", "") == key:
                return member
        raise ValidationError(f"Unknown transaction type: {raw}")


class TransactionStatus(Enum):
    RECEIVED = "Received"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ERROR = "Error"

    @property
    def is_terminal(self) -> bool:
        return self in (
            TransactionStatus.COMPLETED,
            TransactionStatus.FAILED,
            TransactionStatus.ERROR,
        )


class StepStatus(Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"
    COMPENSATED = "Compensated"
    COMPENSATION_FAILED = "CompensationFailed"


@dataclass(frozen=True)
class StepRecord:
    name: str
    status: StepStatus
    error: str | None = None


@dataclass(frozen=True)
class BusinessTransactionRequest:
    """Input: what the caller asked the orchestrator to run.

    ``transaction_type`` is kept as the raw tag; it is parsed at the
    orchestrator boundary so unknown tags produce a Failed result rather
    than a construction error.
    """

    transaction_id: str
    transaction_type: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    initiated_by: str = ""


@dataclass(frozen=True)
class TransactionResult:
    transaction_id: str
    transaction_type: TransactionType | None
    success: bool
    status: TransactionStatus
    results: Mapping[str, Any]
    errors: tuple[str, ...]
    steps: tuple[StepRecord, ...]
    started_at: datetime
    completed_at: datetime

    @property
    def duration(self) -> timedelta:
        return self.completed_at - self.started_at

    def plain_results(self) -> dict[str, Any]:
        """Mutable deep copy of ``results`` for serialization."""
        return _thaw(self.results)

    @staticmethod
    def build(
        transaction_id: str,
        transaction_type: TransactionType | None,
        status: TransactionStatus,
        started_at: datetime,
        results: Mapping[str, Any] | None = None,
        errors: list[str] | None = None,
        steps: list[StepRecord] | None = None,
    ) -> TransactionResult:
        """Freeze the collected state of a run into a result."""
        return TransactionResult(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            success=status is TransactionStatus.COMPLETED,
            status=status,
            results=_freeze(results or {}),
            errors=tuple(errors or ()),
            steps=tuple(steps or ()),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value
