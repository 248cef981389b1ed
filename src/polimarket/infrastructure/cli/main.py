"""Entry point for the ``polimarket`` command."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import click
import uvicorn

from polimarket.infrastructure.api.app import create_app
from polimarket.infrastructure.bootstrap import build_services
from polimarket.infrastructure.cli.health_commands import health
from polimarket.infrastructure.cli.stock_commands import (
    stock_adjust,
    stock_alerts,
    stock_check,
    stock_movements,
    stock_show,
    stock_update,
)
from polimarket.infrastructure.cli.transaction_commands import transaction_run
from polimarket.infrastructure.config import Settings
from polimarket.infrastructure.logging import configure_logging

# The CLI keeps state between invocations, so it falls back to ./data
# when POLIMARKET_DATA_DIR is unset.
DEFAULT_DATA_DIR = Path("data")


@click.group()
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Directory holding stock.json and movements.json.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log domain events to stderr.")
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None, verbose: bool) -> None:
    """PoliMarket: stock ledger and business transactions."""
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        raise click.ClickException(str(exc))
    settings = dataclasses.replace(
        settings, data_dir=data_dir or settings.data_dir or DEFAULT_DATA_DIR
    )
    configure_logging(settings.log_level if verbose else "WARNING", settings.log_json)
    ctx.obj = settings


@cli.group()
def stock() -> None:
    """Query and move stock."""


@cli.group()
def transaction() -> None:
    """Run business transactions."""


@cli.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
@click.pass_obj
def serve(settings: Settings, host: str, port: int) -> None:
    """Serve the HTTP API with uvicorn."""
    configure_logging(settings.log_level, settings.log_json)
    uvicorn.run(create_app(build_services(settings)), host=host, port=port, log_config=None)


# Register subcommands
stock.add_command(stock_adjust)
stock.add_command(stock_alerts)
stock.add_command(stock_check)
stock.add_command(stock_movements)
stock.add_command(stock_show)
stock.add_command(stock_update)
transaction.add_command(transaction_run)
cli.add_command(health)
