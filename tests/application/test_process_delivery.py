"""Integration tests for the ProcessDelivery business transaction."""

from polimarket.domain.gateways import DeliveryRecord, SaleRecord
from polimarket.domain.model.transaction import (
    BusinessTransactionRequest,
    StepStatus,
    TransactionStatus,
)
from tests.fakes import make_system


def _deliver(transaction_id="TX-D1", **payload):
    return BusinessTransactionRequest(
        transaction_id=transaction_id, transaction_type="ProcessDelivery", payload=payload
    )


def _system_with_delivery(status="Scheduled"):
    system = make_system()
    system.deliveries.deliveries["DEL-9"] = DeliveryRecord(
        delivery_id="DEL-9", sale_id="SALE-9", address="Calle 1", status=status
    )
    return system


class TestProcessExistingDelivery:

    def test_defaults_to_in_transit(self):
        system = _system_with_delivery()

        result = system.orchestrator.execute(_deliver(delivery_id="DEL-9"))

        assert result.status is TransactionStatus.COMPLETED
        assert result.results["previous_status"] == "Scheduled"
        assert result.results["status"] == "InTransit"
        assert system.deliveries.deliveries["DEL-9"].status == "InTransit"

    def test_explicit_target_status(self):
        system = _system_with_delivery(status="InTransit")

        result = system.orchestrator.execute(_deliver(delivery_id="DEL-9", status="Delivered"))

        assert result.success
        assert system.deliveries.deliveries["DEL-9"].status == "Delivered"
        [event] = system.publisher.events
        assert event.event_type == "DeliveryProcessed"
        assert event.data["status"] == "Delivered"

    def test_unknown_delivery(self):
        system = make_system()

        result = system.orchestrator.execute(_deliver(delivery_id="DEL-404"))

        assert result.status is TransactionStatus.FAILED
        assert result.errors == ("Delivery 'DEL-404' not found",)

    def test_final_delivery_cannot_move(self):
        system = _system_with_delivery(status="Delivered")

        result = system.orchestrator.execute(_deliver(delivery_id="DEL-9"))

        assert result.status is TransactionStatus.FAILED
        assert "already Delivered" in result.errors[0]

    def test_unknown_status_rejected(self):
        system = _system_with_delivery()

        result = system.orchestrator.execute(_deliver(delivery_id="DEL-9", status="Lost"))

        assert result.status is TransactionStatus.FAILED
        assert "Unknown delivery status 'Lost'" in result.errors[0]

    def test_needs_delivery_or_sale(self):
        system = make_system()

        result = system.orchestrator.execute(_deliver())

        assert result.status is TransactionStatus.FAILED
        assert result.errors == ("Either 'delivery_id' or 'sale_id' is required",)


class TestProcessDeliveryFromSale:

    def test_schedules_and_moves_delivery_for_sale(self):
        system = make_system()
        system.sales.sales["SALE-7"] = SaleRecord(
            sale_id="SALE-7", seller_id="V001", customer_id=None, lines=()
        )

        result = system.orchestrator.execute(
            _deliver(sale_id="SALE-7", delivery_address="Carrera 7")
        )

        assert result.success
        assert result.results["sale_id"] == "SALE-7"
        assert result.results["previous_status"] == "Scheduled"
        delivery = system.deliveries.deliveries[result.results["delivery_id"]]
        assert delivery.status == "InTransit"

    def test_unknown_sale(self):
        system = make_system()

        result = system.orchestrator.execute(
            _deliver(sale_id="SALE-404", delivery_address="Carrera 7")
        )

        assert result.status is TransactionStatus.FAILED
        assert result.errors == ("Sale 'SALE-404' not found",)

    def test_status_update_failure_cancels_new_delivery(self):
        system = make_system()
        system.sales.sales["SALE-7"] = SaleRecord(
            sale_id="SALE-7", seller_id="V001", customer_id=None, lines=()
        )
        system.deliveries.update_error = RuntimeError("tracking offline")

        result = system.orchestrator.execute(
            _deliver(sale_id="SALE-7", delivery_address="Carrera 7")
        )

        assert result.status is TransactionStatus.ERROR
        assert result.errors == ("update_delivery_status: tracking offline",)
        assert system.deliveries.cancelled == ["DEL-1"]
        assert ("cancel_delivery", StepStatus.COMPENSATED) in [
            (s.name, s.status) for s in result.steps
        ]
