"""Tests for the TransactionOrchestrator boundary behaviour."""

import threading

import pytest

from polimarket.application.orchestrator import (
    UNEXPECTED_ERROR_MESSAGE,
    TransactionOrchestrator,
)
from polimarket.application.restock_inventory import RestockInventoryWorkflow
from polimarket.domain.exceptions import EntityNotFoundError
from polimarket.domain.model.transaction import (
    BusinessTransactionRequest,
    TransactionStatus,
    TransactionType,
)
from tests.fakes import Blocker, make_system


def _sale(transaction_id="TX-1"):
    return BusinessTransactionRequest(
        transaction_id=transaction_id,
        transaction_type="complete_sale",
        payload={"seller_id": "V001", "items": [{"product_id": "P002", "quantity": 10}]},
    )


class TestOrchestratorConstruction:

    def test_every_type_needs_a_workflow(self):
        system = make_system()
        with pytest.raises(ValueError, match="complete_sale"):
            TransactionOrchestrator(
                workflows=[RestockInventoryWorkflow(system.ledger, system.suppliers)],
                publisher=system.publisher,
            )


class TestOrchestratorBoundary:

    def test_unknown_type_fails_without_side_effects(self):
        system = make_system()
        request = BusinessTransactionRequest(
            transaction_id="TX-1", transaction_type="RefundSale", payload={}
        )

        result = system.orchestrator.execute(request)

        assert result.status is TransactionStatus.FAILED
        assert result.success is False
        assert result.transaction_type is None
        assert result.errors == ("Unknown transaction type: RefundSale",)
        assert result.steps == ()
        assert system.publisher.events == []

    def test_blank_transaction_id(self):
        system = make_system()

        result = system.orchestrator.execute(_sale(transaction_id="  "))

        assert result.status is TransactionStatus.FAILED
        assert result.errors == ("Transaction ID is required",)

    def test_duration_always_populated(self):
        system = make_system()

        result = system.orchestrator.execute(_sale(transaction_id=""))

        assert result.completed_at >= result.started_at
        assert result.duration.total_seconds() >= 0

    def test_result_type_is_parsed(self):
        system = make_system()

        result = system.orchestrator.execute(_sale())

        assert result.transaction_type is TransactionType.COMPLETE_SALE


class TestOrchestratorDuplicates:

    def test_duplicate_id_rejected_without_side_effects(self):
        system = make_system()
        first = system.orchestrator.execute(_sale())
        assert first.success

        second = system.orchestrator.execute(_sale())

        assert second.status is TransactionStatus.FAILED
        assert second.errors == ("Duplicate transaction id: TX-1",)
        assert system.ledger.get_current_stock("P002").current_stock == 70
        assert len(system.sales.sales) == 1

    def test_duplicate_does_not_replace_stored_result(self):
        system = make_system()
        first = system.orchestrator.execute(_sale())
        system.orchestrator.execute(_sale())

        assert system.orchestrator.get_result("TX-1") is first

    def test_rejected_request_can_be_retried(self):
        system = make_system()
        bad = BusinessTransactionRequest(
            transaction_id="TX-1", transaction_type="nope", payload={}
        )
        system.orchestrator.execute(bad)

        assert system.orchestrator.execute(_sale()).success

    def test_in_flight_duplicate_rejected(self):
        system = make_system(step_timeout=5.0)
        blocker = system.sales.blocker = Blocker()
        results = {}

        worker = threading.Thread(
            target=lambda: results.setdefault("first", system.orchestrator.execute(_sale()))
        )
        worker.start()
        try:
            assert blocker.entered.wait(timeout=5)
            assert system.orchestrator.status_of("TX-1") is TransactionStatus.PROCESSING
            second = system.orchestrator.execute(_sale())
        finally:
            blocker.release()
            worker.join()

        assert second.errors == ("Duplicate transaction id: TX-1",)
        assert results["first"].success
        assert system.orchestrator.status_of("TX-1") is TransactionStatus.COMPLETED


class TestOrchestratorResults:

    def test_get_result_returns_stored_result(self):
        system = make_system()
        result = system.orchestrator.execute(_sale())

        assert system.orchestrator.get_result("TX-1") is result

    def test_unknown_result(self):
        system = make_system()
        with pytest.raises(EntityNotFoundError, match="TX-404"):
            system.orchestrator.get_result("TX-404")

    def test_failed_results_are_stored(self):
        system = make_system()
        system.authorization.authorized.clear()
        system.orchestrator.execute(_sale())

        assert system.orchestrator.status_of("TX-1") is TransactionStatus.FAILED


class TestOrchestratorUnexpectedErrors:

    def test_collaborator_crash_is_a_dependency_failure(self):
        system = make_system()
        system.authorization.error = KeyError("secret internals")

        result = system.orchestrator.execute(_sale())

        assert result.status is TransactionStatus.ERROR
        assert result.errors == ("authorize_seller: 'secret internals'",)

    def test_in_process_crash_uses_generic_message(self):
        system = make_system()

        def explode(*args, **kwargs):
            raise ZeroDivisionError("division by zero")

        system.ledger.check_availability = explode

        result = system.orchestrator.execute(_sale())

        assert result.status is TransactionStatus.ERROR
        assert result.errors == (UNEXPECTED_ERROR_MESSAGE,)
