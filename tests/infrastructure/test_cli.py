"""End-to-end tests for the click CLI using JSON files in a temp dir."""

import json

import pytest
from click.testing import CliRunner

from polimarket.infrastructure.cli.main import cli


@pytest.fixture()
def run(tmp_path):
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(cli, ["--data-dir", str(tmp_path), *args])

    return invoke


class TestStockCommands:

    def test_show_seeds_catalogue(self, run, tmp_path):
        result = run("stock", "show")

        assert result.exit_code == 0
        assert "P001" in result.output
        assert "Aceite Girasol 1L" in result.output
        assert (tmp_path / "stock.json").exists()

    def test_update_persists_between_invocations(self, run):
        result = run("stock", "update", "--product", "P002", "--quantity", "30", "--type", "salida")
        assert result.exit_code == 0
        assert "Stock for P002: 80 -> 50" in result.output

        result = run("stock", "show", "--product", "P002")
        assert "On hand:   50" in result.output

    def test_oversell_is_rejected(self, run):
        result = run("stock", "update", "--product", "P002", "--quantity", "81", "--type", "outbound")

        assert result.exit_code == 1
        assert "Insufficient stock" in result.output

    def test_check(self, run):
        result = run("stock", "check", "--product", "P002", "--quantity", "100")

        assert result.exit_code == 0
        assert "Insufficient stock" in result.output

    def test_adjust_and_movements(self, run):
        run("stock", "adjust", "--product", "P004", "--quantity", "55", "--reason", "Conteo")

        result = run("stock", "movements", "--product", "P004")

        assert result.exit_code == 0
        assert "AbsoluteSet" in result.output
        assert "Conteo" in result.output

    def test_alerts(self, run):
        result = run("stock", "alerts", "--threshold", "60")

        assert result.exit_code == 0
        assert "[LowStock] Low stock for product PROD001: 50 units" in result.output


class TestTransactionCommands:

    def test_complete_sale(self, run):
        payload = {"seller_id": "V001", "items": [{"product_id": "P002", "quantity": 5}]}

        result = run(
            "transaction", "run", "--type", "CompleteSale", "--id", "TX-CLI-1",
            "--payload", json.dumps(payload),
        )

        assert result.exit_code == 0
        assert "status=Completed" in result.output
        assert "create_sale" in result.output
        assert "On hand:   75" in run("stock", "show", "--product", "P002").output

    def test_failed_transaction_exits_non_zero(self, run):
        payload = {"seller_id": "V007", "items": [{"product_id": "P002", "quantity": 5}]}

        result = run("transaction", "run", "--type", "complete_sale", "--payload", json.dumps(payload))

        assert result.exit_code == 1
        assert "status=Failed" in result.output
        assert "not authorized" in result.output

    def test_payload_must_be_json_object(self, run):
        result = run("transaction", "run", "--type", "complete_sale", "--payload", "[1, 2]")

        assert result.exit_code == 2


class TestHealthCommand:

    def test_health(self, run):
        result = run("health")

        assert result.exit_code == 0
        assert "PoliMarket: Healthy" in result.output
        assert "Suppliers" in result.output
