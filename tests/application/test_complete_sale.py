"""Integration tests for the CompleteSale business transaction."""

import threading

from polimarket.domain.model.transaction import (
    BusinessTransactionRequest,
    StepStatus,
    TransactionStatus,
)
from tests.fakes import Blocker, make_system, wait_until


def _sale(transaction_id="TX-1", seller_id="V001", items=None, **extra):
    payload = {
        "seller_id": seller_id,
        "customer_id": "C001",
        "items": items
        or [
            {"product_id": "P001", "quantity": 2, "unit_price": 10.0},
            {"product_id": "P002", "quantity": 3, "unit_price": 5.0},
        ],
        **extra,
    }
    return BusinessTransactionRequest(
        transaction_id=transaction_id, transaction_type="CompleteSale", payload=payload
    )


def _stock(system, product_id):
    entry = system.repo.get_by_product_id(product_id)
    return entry.quantity, entry.reserved


def _steps(result):
    return [(s.name, s.status) for s in result.steps]


class TestCompleteSaleHappyPath:

    def test_sale_deducts_stock_and_schedules_delivery(self):
        system = make_system()

        result = system.orchestrator.execute(_sale(delivery_address="Calle 1 #2-3"))

        assert result.status is TransactionStatus.COMPLETED
        assert result.success is True
        assert result.errors == ()
        assert result.results["sale_id"] == "SALE-1"
        assert result.results["total"] == 35.0
        assert result.results["inventory_updated"] is True
        assert result.results["delivery_scheduled"] is True
        assert result.results["delivery_id"] == "DEL-1"
        assert result.results["stock_levels"] == {"P001": 148, "P002": 77}
        assert _stock(system, "P001") == (148, 0)
        assert _stock(system, "P002") == (77, 0)

    def test_steps_run_in_order(self):
        system = make_system()

        result = system.orchestrator.execute(_sale(delivery_address="Calle 1"))

        assert [name for name, _ in _steps(result)] == [
            "authorize_seller",
            "check_availability",
            "reserve_stock:P001",
            "reserve_stock:P002",
            "create_sale",
            "deduct_stock:P001",
            "deduct_stock:P002",
            "schedule_delivery",
            "publish_event",
        ]
        assert all(status is StepStatus.COMPLETED for _, status in _steps(result))

    def test_without_address_no_delivery(self):
        system = make_system()

        result = system.orchestrator.execute(_sale())

        assert result.results["delivery_scheduled"] is False
        assert result.results["delivery_id"] is None
        assert system.deliveries.deliveries == {}

    def test_publishes_sale_completed(self):
        system = make_system()

        result = system.orchestrator.execute(_sale())

        [event] = system.publisher.events
        assert event.event_type == "SaleCompleted"
        assert event.source_component == "Sales"
        assert event.correlation_id == "TX-1"
        assert event.data["sale_id"] == result.results["sale_id"]
        assert result.results["notifications_sent"] is True

    def test_repeated_lines_are_summed(self):
        system = make_system()
        items = [
            {"product_id": "P001", "quantity": 2},
            {"product_id": "P001", "quantity": 3},
        ]

        result = system.orchestrator.execute(_sale(items=items))

        assert result.success
        assert _stock(system, "P001") == (145, 0)
        assert "reserve_stock:P001" in [name for name, _ in _steps(result)]

    def test_movements_reference_the_sale(self):
        system = make_system()

        system.orchestrator.execute(_sale())

        [movement] = system.ledger.list_movements("P001")
        assert movement.reference == "SALE-1"
        assert movement.actor == "V001"

    def test_publish_failure_does_not_fail_the_sale(self):
        system = make_system()
        system.publisher.error = RuntimeError("broker down")

        result = system.orchestrator.execute(_sale())

        assert result.status is TransactionStatus.COMPLETED
        assert result.results["notifications_sent"] is False
        assert _steps(result)[-1] == ("publish_event", StepStatus.FAILED)


class TestCompleteSaleRejections:

    def test_unauthorized_seller(self):
        system = make_system()

        result = system.orchestrator.execute(_sale(seller_id="V999"))

        assert result.status is TransactionStatus.FAILED
        assert "not authorized" in result.errors[0]
        assert system.sales.sales == {}
        assert _stock(system, "P001") == (150, 0)

    def test_insufficient_stock_touches_nothing(self):
        system = make_system()
        items = [
            {"product_id": "P001", "quantity": 1},
            {"product_id": "P003", "quantity": 6},
        ]

        result = system.orchestrator.execute(_sale(items=items))

        assert result.status is TransactionStatus.FAILED
        assert result.errors == ("Insufficient stock for P003 (requested 6, available 5)",)
        assert _stock(system, "P001") == (150, 0)
        assert _stock(system, "P003") == (5, 0)
        assert system.publisher.events == []

    def test_missing_items(self):
        system = make_system()
        request = BusinessTransactionRequest(
            transaction_id="TX-1",
            transaction_type="complete_sale",
            payload={"seller_id": "V001", "items": []},
        )

        result = system.orchestrator.execute(request)

        assert result.status is TransactionStatus.FAILED
        assert result.errors == ("'items' must be a non-empty list",)

    def test_non_positive_quantity(self):
        system = make_system()

        result = system.orchestrator.execute(
            _sale(items=[{"product_id": "P001", "quantity": 0}])
        )

        assert result.status is TransactionStatus.FAILED
        assert "positive integer quantity" in result.errors[0]


class TestCompleteSaleCompensation:

    def test_sale_record_failure_releases_reservations(self):
        system = make_system()
        system.sales.create_error = RuntimeError("sales service down")

        result = system.orchestrator.execute(_sale())

        assert result.status is TransactionStatus.ERROR
        assert result.errors == ("create_sale: sales service down",)
        assert _stock(system, "P001") == (150, 0)
        assert _stock(system, "P002") == (80, 0)
        assert ("release_stock:P002", StepStatus.COMPENSATED) in _steps(result)
        assert ("release_stock:P001", StepStatus.COMPENSATED) in _steps(result)
        assert system.publisher.events == []

    def test_delivery_failure_rolls_back_sale_and_stock(self):
        system = make_system()
        system.deliveries.schedule_error = RuntimeError("no trucks")

        result = system.orchestrator.execute(_sale(delivery_address="Calle 1"))

        assert result.status is TransactionStatus.ERROR
        assert system.sales.cancelled == ["SALE-1"]
        assert _stock(system, "P001") == (150, 0)
        assert _stock(system, "P002") == (80, 0)
        compensations = [name for name, status in _steps(result) if status is StepStatus.COMPENSATED]
        assert compensations == [
            "restore_stock:P002",
            "restore_stock:P001",
            "cancel_sale",
        ]

    def test_rollback_leaves_concurrent_reservations_alone(self):
        system = make_system()
        system.deliveries.schedule_error = RuntimeError("no trucks")
        update_stock = system.ledger.update_stock

        def update_then_reserve_elsewhere(product_id, quantity, kind, **kwargs):
            result = update_stock(product_id, quantity, kind, **kwargs)
            if product_id == "P003":
                system.ledger.reserve_stock("P003", 5, "OTHER-TX")
            return result

        system.ledger.update_stock = update_then_reserve_elsewhere

        result = system.orchestrator.execute(
            _sale(items=[{"product_id": "P003", "quantity": 5}], delivery_address="Calle 1")
        )

        assert result.status is TransactionStatus.ERROR
        assert _stock(system, "P003") == (5, 5)
        assert "release_stock:P003" not in [name for name, _ in _steps(result)]

    def test_failed_compensation_is_reported(self):
        system = make_system()
        system.deliveries.schedule_error = RuntimeError("no trucks")
        system.sales.cancel_error = RuntimeError("already invoiced")

        result = system.orchestrator.execute(_sale(delivery_address="Calle 1"))

        assert result.status is TransactionStatus.ERROR
        assert result.errors == (
            "schedule_delivery: no trucks",
            "Compensation 'cancel_sale' failed: cancel_sale: already invoiced",
        )
        assert ("cancel_sale", StepStatus.COMPENSATION_FAILED) in _steps(result)
        # The remaining compensations still ran.
        assert _stock(system, "P001") == (150, 0)


class TestCompleteSaleTimeouts:

    def test_hanging_sales_service_times_out(self):
        system = make_system(step_timeout=0.2)
        system.sales.blocker = Blocker()
        try:
            result = system.orchestrator.execute(_sale())
        finally:
            system.sales.blocker.release()

        assert result.status is TransactionStatus.ERROR
        assert result.errors == ("Step 'create_sale' timed out after 0.2s",)
        assert _stock(system, "P001") == (150, 0)

    def test_sale_recorded_after_timeout_is_cancelled(self):
        system = make_system(step_timeout=0.2)
        blocker = system.sales.blocker = Blocker()
        try:
            result = system.orchestrator.execute(_sale())
        finally:
            blocker.release()

        assert result.status is TransactionStatus.ERROR
        assert wait_until(lambda: system.sales.cancelled == ["SALE-1"])
        assert system.sales.sales["SALE-1"].status == "Cancelled"

    def test_cancel_before_start(self):
        system = make_system()
        cancel = threading.Event()
        cancel.set()

        result = system.orchestrator.execute(_sale(), cancel_event=cancel)

        assert result.status is TransactionStatus.ERROR
        assert "cancelled by caller" in result.errors[0]
        assert system.sales.sales == {}

    def test_cancel_during_step(self):
        system = make_system(step_timeout=5.0)
        blocker = system.sales.blocker = Blocker()
        cancel = threading.Event()

        def cancel_when_blocked():
            blocker.entered.wait(timeout=5)
            cancel.set()

        canceller = threading.Thread(target=cancel_when_blocked)
        canceller.start()
        try:
            result = system.orchestrator.execute(_sale(), cancel_event=cancel)
        finally:
            blocker.release()
            canceller.join()

        assert result.status is TransactionStatus.ERROR
        assert result.errors == (
            "Transaction cancelled by caller during step 'create_sale'",
        )
        assert _stock(system, "P001") == (150, 0)
        assert result.duration.total_seconds() < 5.0
        assert wait_until(lambda: system.sales.cancelled == ["SALE-1"])
