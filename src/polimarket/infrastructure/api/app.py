"""PoliMarket HTTP API.

Two routers, one per component: ``/api/inventory`` exposes the stock
ledger and ``/api/integration`` the orchestrator, health aggregator, event
publishing and component configuration.  Handlers are plain ``def``
functions so the blocking domain code runs on FastAPI's threadpool.

Usage:
    uvicorn polimarket.infrastructure.api.app:app --port 8000
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from polimarket.domain.exceptions import DomainException, ErrorKind
from polimarket.domain.model.transaction import BusinessTransactionRequest
from polimarket.infrastructure.api.schemas import (
    AdjustStockRequest,
    AlertView,
    ApiResponse,
    AvailabilityView,
    CheckAvailabilityRequest,
    EventView,
    ExecuteTransactionRequest,
    HealthView,
    MovementView,
    OperationView,
    PublishEventRequest,
    ReservationRequest,
    StockView,
    SystemStatusView,
    TransactionView,
    UpdateStockRequest,
)
from polimarket.infrastructure.bootstrap import Services, build_services
from polimarket.infrastructure.config import Settings
from polimarket.infrastructure.logging import configure_logging

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
INTERNAL_ERROR_MESSAGE = "Internal server error"

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.INVALID_STOCK_OPERATION: 409,
    ErrorKind.DEPENDENCY_FAILURE: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UNKNOWN: 500,
}


def _services(request: Request) -> Services:
    return request.app.state.services


def _correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


def _respond(
    request: Request,
    data: Any = None,
    message: str = "",
    success: bool = True,
    errors: list[str] | None = None,
    status_code: int = 200,
) -> JSONResponse:
    body = ApiResponse(
        success=success,
        message=message,
        data=data,
        errors=errors or [],
        correlation_id=_correlation_id(request),
    )
    return JSONResponse(content=body.model_dump(mode="json"), status_code=status_code)


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@inventory_router.post("/check-availability")
def check_availability(body: CheckAvailabilityRequest, request: Request) -> JSONResponse:
    snapshot = _services(request).ledger.check_availability(body.product_id, body.quantity)
    return _respond(request, AvailabilityView.of(snapshot), "Availability checked")


@inventory_router.get("/stock")
def list_stock(request: Request) -> JSONResponse:
    entries = _services(request).ledger.list_stock()
    return _respond(request, [StockView.of(e) for e in entries], f"{len(entries)} products")


@inventory_router.get("/stock/{product_id}")
def get_stock(product_id: str, request: Request) -> JSONResponse:
    snapshot = _services(request).ledger.get_current_stock(product_id)
    return _respond(request, AvailabilityView.of(snapshot), "Current stock retrieved")


@inventory_router.put("/stock")
def update_stock(body: UpdateStockRequest, request: Request) -> JSONResponse:
    result = _services(request).ledger.update_stock(
        body.product_id,
        body.quantity,
        body.movement_type,
        reason=body.reason,
        actor=body.actor,
        reference=body.reference,
    )
    return _respond(request, OperationView.of(result), "Stock updated")


@inventory_router.post("/stock/{product_id}/adjust")
def adjust_stock(product_id: str, body: AdjustStockRequest, request: Request) -> JSONResponse:
    result = _services(request).ledger.adjust_stock(
        product_id, body.new_quantity, body.reason, body.actor
    )
    return _respond(request, OperationView.of(result), "Stock adjusted")


@inventory_router.post("/stock/{product_id}/reserve")
def reserve_stock(product_id: str, body: ReservationRequest, request: Request) -> JSONResponse:
    snapshot = _services(request).ledger.reserve_stock(product_id, body.quantity, body.reference)
    return _respond(request, AvailabilityView.of(snapshot), "Stock reserved")


@inventory_router.post("/stock/{product_id}/release")
def release_stock(product_id: str, body: ReservationRequest, request: Request) -> JSONResponse:
    snapshot = _services(request).ledger.release_stock(product_id, body.quantity, body.reference)
    return _respond(request, AvailabilityView.of(snapshot), "Reservation released")


@inventory_router.get("/movements/{product_id}")
def list_movements(
    product_id: str,
    request: Request,
    start: datetime | None = None,
    end: datetime | None = None,
) -> JSONResponse:
    movements = _services(request).ledger.list_movements(product_id, start, end)
    return _respond(
        request, [MovementView.of(m) for m in movements], f"{len(movements)} movements"
    )


@inventory_router.get("/alerts")
def stock_alerts(request: Request, threshold: int | None = None) -> JSONResponse:
    alerts = _services(request).ledger.generate_alerts(threshold)
    return _respond(request, [AlertView.of(a) for a in alerts], f"{len(alerts)} stock alerts")


# ---------------------------------------------------------------------------
# Integration Router
# ---------------------------------------------------------------------------
integration_router = APIRouter(prefix="/api/integration", tags=["integration"])


@integration_router.post("/execute-transaction")
def execute_transaction(body: ExecuteTransactionRequest, request: Request) -> JSONResponse:
    result = _services(request).orchestrator.execute(
        BusinessTransactionRequest(
            transaction_id=body.transaction_id,
            transaction_type=body.transaction_type,
            payload=body.payload,
            initiated_by=body.initiated_by,
        )
    )
    view = TransactionView.of(result)
    if result.success:
        return _respond(request, view, "Transaction completed successfully")
    return _respond(
        request,
        view,
        "Transaction failed",
        success=False,
        errors=list(result.errors),
        status_code=400,
    )


@integration_router.get("/transactions/{transaction_id}")
def get_transaction(transaction_id: str, request: Request) -> JSONResponse:
    result = _services(request).orchestrator.get_result(transaction_id)
    return _respond(request, TransactionView.of(result), f"Transaction {result.status.value}")


@integration_router.get("/health")
def system_health(request: Request) -> JSONResponse:
    report = _services(request).health.check_system_health()
    return _respond(request, HealthView.of(report), f"System is {report.overall_status}")


@integration_router.get("/status")
def system_status(request: Request) -> JSONResponse:
    status = _services(request).health.system_status()
    return _respond(request, SystemStatusView.of(status), "System status retrieved")


@integration_router.post("/publish-event")
def publish_event(body: PublishEventRequest, request: Request) -> JSONResponse:
    event = _services(request).publish_event.handle(
        body.event_type,
        body.source_component,
        data=body.data,
        correlation_id=body.correlation_id or _correlation_id(request),
    )
    return _respond(request, EventView.of(event), "Event published")


@integration_router.get("/configuration/{component_name}")
def component_configuration(component_name: str, request: Request) -> JSONResponse:
    settings = _services(request).configuration.get(component_name)
    return _respond(request, settings, f"Configuration for {component_name}")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(services: Services | None = None) -> FastAPI:
    """Build the API around ``services`` (or the environment's, built on startup)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            settings = Settings.from_env()
            configure_logging(settings.log_level, settings.log_json)
            app.state.services = build_services(settings)
        yield
        app.state.services.close()

    app = FastAPI(title="PoliMarket API", lifespan=lifespan)
    app.state.services = services

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    @app.exception_handler(DomainException)
    async def domain_error(request: Request, exc: DomainException) -> JSONResponse:
        status_code = _STATUS_BY_KIND[exc.kind]
        if status_code == 500:
            logger.error("request_failed", path=request.url.path, error=str(exc))
            return _respond(
                request,
                message=INTERNAL_ERROR_MESSAGE,
                success=False,
                errors=[INTERNAL_ERROR_MESSAGE],
                status_code=500,
            )
        logger.warning(
            "request_rejected",
            path=request.url.path,
            kind=exc.kind.value,
            error=str(exc),
        )
        return _respond(
            request, message=str(exc), success=False, errors=[str(exc)], status_code=status_code
        )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        return _respond(
            request,
            message="Invalid request",
            success=False,
            errors=errors,
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_crashed", path=request.url.path)
        return _respond(
            request,
            message=INTERNAL_ERROR_MESSAGE,
            success=False,
            errors=[INTERNAL_ERROR_MESSAGE],
            status_code=500,
        )

    app.include_router(inventory_router)
    app.include_router(integration_router)
    return app


app = create_app()
