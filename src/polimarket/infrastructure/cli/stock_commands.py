"""CLI commands for the stock ledger."""

from __future__ import annotations

from datetime import datetime

import click

from polimarket.domain.exceptions import DomainException
from polimarket.domain.model.stock import MovementKind
from polimarket.infrastructure.bootstrap import stock_ledger
from polimarket.infrastructure.config import Settings

_KIND_CHOICES = click.Choice(
    ["inbound", "outbound", "set", "entrada", "salida", "ajuste"], case_sensitive=False
)


@click.command("show")
@click.option("--product", "product_id", default=None, help="Show a single product.")
@click.pass_obj
def stock_show(settings: Settings, product_id: str | None) -> None:
    """Show current stock levels."""
    ledger = stock_ledger(settings)

    if product_id is not None:
        try:
            snap = ledger.get_current_stock(product_id)
        except DomainException as exc:
            raise click.ClickException(str(exc))
        click.echo(f"{snap.product_id}  {snap.product_name}  ({snap.status})")
        click.echo(f"  On hand:   {snap.current_stock}")
        click.echo(f"  Reserved:  {snap.reserved_stock}")
        click.echo(f"  Available: {snap.available_stock}")
        return

    entries = ledger.list_stock()
    if not entries:
        click.echo("No stock records found.")
        return

    click.echo(f"{'Product':<10} {'Name':<32} {'On hand':>8} {'Reserved':>10} {'Available':>10}")
    click.echo("-" * 74)
    for e in entries:
        click.echo(
            f"{e.product_id:<10} {e.product_name[:32]:<32} "
            f"{e.quantity:>8} {e.reserved:>10} {e.available:>10}"
        )


@click.command("check")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--quantity", required=True, type=int, help="Requested quantity.")
@click.pass_obj
def stock_check(settings: Settings, product_id: str, quantity: int) -> None:
    """Check whether a quantity of a product is available."""
    try:
        snap = stock_ledger(settings).check_availability(product_id, quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"{snap.product_id}: {snap.status} "
        f"(requested {snap.requested_quantity}, available {snap.available_stock})"
    )


@click.command("update")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--quantity", required=True, type=int, help="Movement quantity.")
@click.option("--type", "kind", required=True, type=_KIND_CHOICES, help="Movement type.")
@click.option("--reason", default="", help="Why the stock moved.")
@click.option("--actor", default="", help="Who moved it.")
@click.pass_obj
def stock_update(
    settings: Settings, product_id: str, quantity: int, kind: str, reason: str, actor: str
) -> None:
    """Record an inbound, outbound or absolute-set movement."""
    movement_kind = MovementKind.ABSOLUTE_SET if kind.lower() == "set" else MovementKind.parse(kind)
    try:
        result = stock_ledger(settings).update_stock(
            product_id, quantity, movement_kind, reason=reason, actor=actor
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Stock for {product_id}: {result.previous} -> {result.new}")


@click.command("adjust")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--quantity", required=True, type=int, help="Counted quantity.")
@click.option("--reason", required=True, help="Reason for the adjustment.")
@click.option("--actor", default="", help="Who counted.")
@click.pass_obj
def stock_adjust(
    settings: Settings, product_id: str, quantity: int, reason: str, actor: str
) -> None:
    """Set a product's stock to a counted level."""
    try:
        result = stock_ledger(settings).adjust_stock(product_id, quantity, reason, actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Stock for {product_id} adjusted: {result.previous} -> {result.new}")


@click.command("alerts")
@click.option("--threshold", default=None, type=int, help="Alert below this quantity.")
@click.pass_obj
def stock_alerts(settings: Settings, threshold: int | None) -> None:
    """List products running low on stock."""
    try:
        alerts = stock_ledger(settings).generate_alerts(threshold)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not alerts:
        click.echo("No stock alerts.")
        return
    for alert in alerts:
        click.echo(f"[{alert.alert_type}] {alert.message}")


@click.command("movements")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--since", type=click.DateTime(), default=None, help="Only movements after this time.")
@click.option("--until", type=click.DateTime(), default=None, help="Only movements before this time.")
@click.pass_obj
def stock_movements(
    settings: Settings, product_id: str, since: datetime | None, until: datetime | None
) -> None:
    """Show the movement history of a product."""
    try:
        movements = stock_ledger(settings).list_movements(
            product_id, _aware(since), _aware(until)
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not movements:
        click.echo(f"No movements recorded for {product_id}.")
        return

    click.echo(f"{'When':<20} {'Type':<12} {'Qty':>6} {'Before':>8} {'After':>8}  Reason")
    click.echo("-" * 74)
    for m in movements:
        click.echo(
            f"{m.timestamp:%Y-%m-%d %H:%M:%S} {m.kind.value:<12} {m.quantity:>6} "
            f"{m.previous:>8} {m.new:>8}  {m.reason}"
        )


def _aware(value: datetime | None) -> datetime | None:
    """Read naive times from the command line as local time."""
    if value is None or value.tzinfo is not None:
        return value
    return value.astimezone()
