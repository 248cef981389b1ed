"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from polimarket.application.complete_sale import CompleteSaleWorkflow
from polimarket.application.configuration import ComponentConfiguration
from polimarket.application.health import HealthAggregator
from polimarket.application.orchestrator import TransactionOrchestrator
from polimarket.application.process_delivery import ProcessDeliveryWorkflow
from polimarket.application.publish_event import PublishEventHandler
from polimarket.application.restock_inventory import RestockInventoryWorkflow
from polimarket.domain.repository.stock_repository import StockRepository
from polimarket.domain.service.stock_ledger import StockLedger
from polimarket.infrastructure.collaborators import (
    InMemoryAuthorizationGateway,
    InMemoryDeliveryGateway,
    InMemorySalesGateway,
    InMemorySupplierGateway,
    LoggingEventPublisher,
)
from polimarket.infrastructure.config import Settings
from polimarket.infrastructure.persistence.json_stock_repository import (
    JsonStockRepository,
)
from polimarket.infrastructure.persistence.memory_stock_repository import (
    InMemoryStockRepository,
)
from polimarket.infrastructure.persistence.seed import (
    AUTHORIZED_SELLERS,
    seed_entries,
    seed_suppliers,
)

logger = structlog.get_logger(__name__)

VERSION = "1.0.0"


@dataclass
class Services:
    settings: Settings
    stock_repo: StockRepository
    ledger: StockLedger
    authorization: InMemoryAuthorizationGateway
    sales: InMemorySalesGateway
    deliveries: InMemoryDeliveryGateway
    suppliers: InMemorySupplierGateway
    publisher: LoggingEventPublisher
    orchestrator: TransactionOrchestrator
    health: HealthAggregator
    configuration: ComponentConfiguration
    publish_event: PublishEventHandler

    def close(self) -> None:
        self.orchestrator.close()


def stock_repository(settings: Settings) -> StockRepository:
    """JSON files under ``data_dir`` when configured, memory otherwise.

    Either store is seeded with the catalogue the first time it is empty.
    """
    if settings.data_dir is None:
        return InMemoryStockRepository(seed_entries())

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    repo = JsonStockRepository(
        settings.data_dir / "stock.json", settings.data_dir / "movements.json"
    )
    if not repo.list_all():
        for entry in seed_entries():
            repo.save(entry)
        logger.info("stock_seeded", data_dir=str(settings.data_dir))
    return repo


def stock_ledger(settings: Settings, stock_repo: StockRepository | None = None) -> StockLedger:
    if stock_repo is None:
        stock_repo = stock_repository(settings)
    return StockLedger(
        stock_repo,
        lock_timeout=settings.lock_timeout,
        low_stock_threshold=settings.low_stock_threshold,
    )


def build_services(settings: Settings | None = None) -> Services:
    settings = settings or Settings.from_env()

    stock_repo = stock_repository(settings)
    ledger = stock_ledger(settings, stock_repo)
    authorization = InMemoryAuthorizationGateway(AUTHORIZED_SELLERS)
    sales = InMemorySalesGateway()
    deliveries = InMemoryDeliveryGateway()
    suppliers = InMemorySupplierGateway(seed_suppliers())
    publisher = LoggingEventPublisher()

    orchestrator = TransactionOrchestrator(
        workflows=[
            CompleteSaleWorkflow(ledger, authorization, sales, deliveries),
            RestockInventoryWorkflow(ledger, suppliers),
            ProcessDeliveryWorkflow(deliveries, sales),
        ],
        publisher=publisher,
        step_timeout=settings.step_timeout,
    )
    health = HealthAggregator(
        {
            "Authorization": authorization.ping,
            "Sales": sales.ping,
            "Inventory": ledger.ping,
            "Delivery": deliveries.ping,
            "Suppliers": suppliers.ping,
        },
        timeout=settings.health_timeout,
        version=VERSION,
        environment=settings.environment,
    )

    return Services(
        settings=settings,
        stock_repo=stock_repo,
        ledger=ledger,
        authorization=authorization,
        sales=sales,
        deliveries=deliveries,
        suppliers=suppliers,
        publisher=publisher,
        orchestrator=orchestrator,
        health=health,
        configuration=ComponentConfiguration(settings.low_stock_threshold),
        publish_event=PublishEventHandler(publisher),
    )
