"""Pydantic request/response schemas for the HTTP API.

These are external contracts, kept separate from the domain dataclasses.
Every response body is an ``ApiResponse`` envelope.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from polimarket.domain.model.events import DomainEvent
from polimarket.domain.model.health import ComponentHealth, SystemHealthReport
from polimarket.domain.model.stock import (
    AvailabilitySnapshot,
    StockAlert,
    StockEntry,
    StockMovement,
    StockOperationResult,
)
from polimarket.domain.model.transaction import TransactionResult


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------
class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Any = None
    errors: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_now)
    correlation_id: str | None = None


# ---------------------------------------------------------------------------
# Inventory requests
# ---------------------------------------------------------------------------
class CheckAvailabilityRequest(BaseModel):
    product_id: str
    quantity: int


class UpdateStockRequest(BaseModel):
    product_id: str
    quantity: int
    movement_type: str
    reason: str = ""
    actor: str = ""
    reference: str | None = None


class AdjustStockRequest(BaseModel):
    new_quantity: int
    reason: str
    actor: str = ""


class ReservationRequest(BaseModel):
    quantity: int
    reference: str = ""


# ---------------------------------------------------------------------------
# Integration requests
# ---------------------------------------------------------------------------
class ExecuteTransactionRequest(BaseModel):
    transaction_id: str
    transaction_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    initiated_by: str = ""


class PublishEventRequest(BaseModel):
    event_type: str
    source_component: str
    data: dict[str, Any] = Field(default_factory=dict)
    correlation_id: str | None = None


# ---------------------------------------------------------------------------
# Response views
# ---------------------------------------------------------------------------
class StockView(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    reserved: int
    available: int

    @classmethod
    def of(cls, entry: StockEntry) -> StockView:
        return cls(
            product_id=entry.product_id,
            product_name=entry.product_name,
            quantity=entry.quantity,
            reserved=entry.reserved,
            available=entry.available,
        )


class AvailabilityView(BaseModel):
    product_id: str
    product_name: str
    current_stock: int
    reserved_stock: int
    available_stock: int
    requested_quantity: int
    is_available: bool
    status: str
    checked_at: datetime

    @classmethod
    def of(cls, snapshot: AvailabilitySnapshot) -> AvailabilityView:
        return cls(
            product_id=snapshot.product_id,
            product_name=snapshot.product_name,
            current_stock=snapshot.current_stock,
            reserved_stock=snapshot.reserved_stock,
            available_stock=snapshot.available_stock,
            requested_quantity=snapshot.requested_quantity,
            is_available=snapshot.is_available,
            status=snapshot.status,
            checked_at=snapshot.checked_at,
        )


class OperationView(BaseModel):
    product_id: str
    previous_stock: int
    new_stock: int
    operation_id: str
    timestamp: datetime

    @classmethod
    def of(cls, result: StockOperationResult) -> OperationView:
        return cls(
            product_id=result.product_id,
            previous_stock=result.previous,
            new_stock=result.new,
            operation_id=result.operation_id,
            timestamp=result.timestamp,
        )


class MovementView(BaseModel):
    movement_id: str
    product_id: str
    movement_type: str
    quantity: int
    previous_stock: int
    new_stock: int
    reason: str
    actor: str
    reference: str | None
    timestamp: datetime

    @classmethod
    def of(cls, movement: StockMovement) -> MovementView:
        return cls(
            movement_id=movement.movement_id,
            product_id=movement.product_id,
            movement_type=movement.kind.value,
            quantity=movement.quantity,
            previous_stock=movement.previous,
            new_stock=movement.new,
            reason=movement.reason,
            actor=movement.actor,
            reference=movement.reference,
            timestamp=movement.timestamp,
        )


class AlertView(BaseModel):
    product_id: str
    product_name: str
    current_stock: int
    threshold: int
    alert_type: str
    message: str

    @classmethod
    def of(cls, alert: StockAlert) -> AlertView:
        return cls(
            product_id=alert.product_id,
            product_name=alert.product_name,
            current_stock=alert.current_stock,
            threshold=alert.threshold,
            alert_type=alert.alert_type,
            message=alert.message,
        )


class StepView(BaseModel):
    name: str
    status: str
    error: str | None = None


class TransactionView(BaseModel):
    transaction_id: str
    transaction_type: str | None
    success: bool
    status: str
    results: dict[str, Any]
    errors: list[str]
    steps: list[StepView]
    started_at: datetime
    completed_at: datetime
    duration_ms: float

    @classmethod
    def of(cls, result: TransactionResult) -> TransactionView:
        return cls(
            transaction_id=result.transaction_id,
            transaction_type=result.transaction_type.value if result.transaction_type else None,
            success=result.success,
            status=result.status.value,
            results=result.plain_results(),
            errors=list(result.errors),
            steps=[
                StepView(name=s.name, status=s.status.value, error=s.error)
                for s in result.steps
            ],
            started_at=result.started_at,
            completed_at=result.completed_at,
            duration_ms=round(result.duration.total_seconds() * 1000, 3),
        )


class ComponentHealthView(BaseModel):
    component_name: str
    is_healthy: bool
    status: str
    response_time_ms: float
    error_message: str | None
    last_checked: datetime

    @classmethod
    def of(cls, health: ComponentHealth) -> ComponentHealthView:
        return cls(
            component_name=health.component_name,
            is_healthy=health.is_healthy,
            status=health.status,
            response_time_ms=round(health.response_time.total_seconds() * 1000, 3),
            error_message=health.error_message,
            last_checked=health.last_checked,
        )


class HealthView(BaseModel):
    is_healthy: bool
    overall_status: str
    components: dict[str, ComponentHealthView]
    checked_at: datetime

    @classmethod
    def of(cls, report: SystemHealthReport) -> HealthView:
        return cls(
            is_healthy=report.is_healthy,
            overall_status=report.overall_status,
            components={
                name: ComponentHealthView.of(c) for name, c in report.components.items()
            },
            checked_at=report.checked_at,
        )


class SystemStatusView(BaseModel):
    system_name: str
    version: str
    environment: str
    timestamp: datetime
    health: HealthView
    components_count: int
    healthy_components: int

    @classmethod
    def of(cls, status: dict[str, Any]) -> SystemStatusView:
        return cls(**{**status, "health": HealthView.of(status["health"])})


class EventView(BaseModel):
    event_id: str
    event_type: str
    source_component: str
    data: dict[str, Any]
    correlation_id: str | None
    timestamp: datetime

    @classmethod
    def of(cls, event: DomainEvent) -> EventView:
        return cls(
            event_id=event.event_id,
            event_type=event.event_type,
            source_component=event.source_component,
            data=dict(event.data),
            correlation_id=event.correlation_id,
            timestamp=event.timestamp,
        )
