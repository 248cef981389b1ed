"""CLI command for the system health report."""

from __future__ import annotations

import click

from polimarket.infrastructure.bootstrap import build_services
from polimarket.infrastructure.config import Settings


@click.command("health")
@click.pass_obj
def health(settings: Settings) -> None:
    """Check every component and print the health report."""
    services = build_services(settings)
    try:
        report = services.health.check_system_health()
    finally:
        services.close()

    click.echo(f"PoliMarket: {report.overall_status}")
    click.echo()
    click.echo(f"  {'Component':<16} {'Status':<10} {'Time (ms)':>10}")
    click.echo(f"  {'-'*38}")
    for name, component in report.components.items():
        ms = component.response_time.total_seconds() * 1000
        click.echo(f"  {name:<16} {component.status:<10} {ms:>10.1f}")
        if component.error_message:
            click.echo(f"    {component.error_message}")

    if not report.is_healthy:
        raise click.exceptions.Exit(1)
