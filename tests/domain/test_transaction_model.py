"""Unit tests for the business transaction value objects."""

from datetime import datetime, timezone

import pytest

from polimarket.domain.exceptions import ValidationError
from polimarket.domain.model.transaction import (
    StepRecord,
    StepStatus,
    TransactionResult,
    TransactionStatus,
    TransactionType,
)


class TestTransactionTypeParse:

    @pytest.mark.parametrize(
        "raw", ["complete_sale", "CompleteSale", "COMPLETE-SALE", " completesale "]
    )
    def test_spellings_of_complete_sale(self, raw):
        assert TransactionType.parse(raw) is TransactionType.COMPLETE_SALE

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError, match="Unknown transaction type: RefundSale"):
            TransactionType.parse("RefundSale")

    def test_empty_type_rejected(self):
        with pytest.raises(ValidationError):
            TransactionType.parse("")


class TestTransactionResult:

    def test_build_completed(self):
        started = datetime.now(timezone.utc)
        result = TransactionResult.build(
            transaction_id="TX-1",
            transaction_type=TransactionType.RESTOCK_INVENTORY,
            status=TransactionStatus.COMPLETED,
            started_at=started,
            results={"purchase_order_id": "PO-1"},
            steps=[StepRecord("create_purchase_order", StepStatus.COMPLETED)],
        )
        assert result.success is True
        assert result.errors == ()
        assert result.completed_at >= started
        assert result.duration == result.completed_at - started

    def test_failed_result_is_not_successful(self):
        result = TransactionResult.build(
            transaction_id="TX-1",
            transaction_type=None,
            status=TransactionStatus.FAILED,
            started_at=datetime.now(timezone.utc),
            errors=["boom"],
        )
        assert result.success is False
        assert result.errors == ("boom",)

    def test_results_are_read_only(self):
        result = TransactionResult.build(
            transaction_id="TX-1",
            transaction_type=None,
            status=TransactionStatus.COMPLETED,
            started_at=datetime.now(timezone.utc),
            results={"a": 1},
        )
        with pytest.raises(TypeError):
            result.results["a"] = 2

    def test_nested_results_are_read_only(self):
        levels = {"P001": 200}
        result = TransactionResult.build(
            transaction_id="TX-1",
            transaction_type=None,
            status=TransactionStatus.COMPLETED,
            started_at=datetime.now(timezone.utc),
            results={"stock_levels": levels, "skus": ["P001"]},
        )
        levels["P001"] = 0

        assert result.results["stock_levels"] == {"P001": 200}
        assert result.results["skus"] == ("P001",)
        with pytest.raises(TypeError):
            result.results["stock_levels"]["P001"] = 1

    def test_plain_results_is_a_mutable_copy(self):
        result = TransactionResult.build(
            transaction_id="TX-1",
            transaction_type=None,
            status=TransactionStatus.COMPLETED,
            started_at=datetime.now(timezone.utc),
            results={"stock_levels": {"P001": 200}, "skus": ("P001",)},
        )

        plain = result.plain_results()
        plain["stock_levels"]["P001"] = 1

        assert plain == {"stock_levels": {"P001": 1}, "skus": ["P001"]}
        assert result.results["stock_levels"]["P001"] == 200

    def test_terminal_statuses(self):
        assert TransactionStatus.COMPLETED.is_terminal
        assert TransactionStatus.ERROR.is_terminal
        assert not TransactionStatus.PROCESSING.is_terminal
        assert not TransactionStatus.RECEIVED.is_terminal
