"""CLI commands for business transactions."""

from __future__ import annotations

import json
import uuid

import click

from polimarket.domain.model.transaction import BusinessTransactionRequest
from polimarket.infrastructure.bootstrap import build_services
from polimarket.infrastructure.config import Settings


def _parse_payload(raw: str) -> dict:
    """Parse the ``--payload`` JSON object."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"Invalid JSON: {exc.msg}", param_hint="--payload")
    if not isinstance(payload, dict):
        raise click.BadParameter("Expected a JSON object.", param_hint="--payload")
    return payload


@click.command("run")
@click.option("--type", "transaction_type", required=True,
              help="complete_sale, restock_inventory or process_delivery.")
@click.option("--id", "transaction_id", default=None, help="Transaction ID (generated if omitted).")
@click.option("--payload", "raw_payload", default="{}", help="Transaction payload as a JSON object.")
@click.option("--initiated-by", default="cli", show_default=True, help="Who runs the transaction.")
@click.pass_obj
def transaction_run(
    settings: Settings,
    transaction_type: str,
    transaction_id: str | None,
    raw_payload: str,
    initiated_by: str,
) -> None:
    """Execute a business transaction and print its step ledger.

    Exits with status 1 when the transaction does not complete.
    """
    payload = _parse_payload(raw_payload)
    services = build_services(settings)
    try:
        result = services.orchestrator.execute(
            BusinessTransactionRequest(
                transaction_id=transaction_id or f"TXN-{uuid.uuid4().hex[:8].upper()}",
                transaction_type=transaction_type,
                payload=payload,
                initiated_by=initiated_by,
            )
        )
    finally:
        services.close()

    click.echo(f"Transaction {result.transaction_id}  (status={result.status.value})")
    duration_ms = result.duration.total_seconds() * 1000
    click.echo(f"Duration: {duration_ms:.1f} ms")
    if result.steps:
        click.echo()
        for step in result.steps:
            suffix = f"  {step.error}" if step.error else ""
            click.echo(f"  {step.name:<28} {step.status.value}{suffix}")
    if result.results:
        click.echo()
        click.echo(json.dumps(result.plain_results(), indent=2, default=str))

    if not result.success:
        raise click.ClickException("; ".join(result.errors))
