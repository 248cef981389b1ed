"""Application service: System Health Aggregator.

Polls a fixed set of named components concurrently and folds the answers
into one report.  A component check is any zero-argument callable that
returns truthy when the component is usable.  Checks are isolated from
each other: one that raises or hangs marks only its own component as
unhealthy.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any

import structlog

from polimarket.domain.model.health import ComponentHealth, SystemHealthReport

logger = structlog.get_logger(__name__)

HealthCheck = Callable[[], Any]

SYSTEM_NAME = "PoliMarket"


class HealthAggregator:

    def __init__(
        self,
        checks: Mapping[str, HealthCheck],
        timeout: float = 2.0,
        version: str = "",
        environment: str = "Development",
    ) -> None:
        if not checks:
            raise ValueError("At least one component check is required")
        self._checks = dict(checks)
        self._timeout = timeout
        self._version = version
        self._environment = environment

    @property
    def component_names(self) -> list[str]:
        return list(self._checks)

    def check_system_health(self) -> SystemHealthReport:
        """Run every check in parallel and wait for all of them (or the timeout)."""
        logger.info("health_check_started", components=self.component_names)
        started = time.monotonic()

        executor = ThreadPoolExecutor(
            max_workers=len(self._checks), thread_name_prefix="polimarket-health"
        )
        try:
            futures = {
                name: executor.submit(_timed, name, check)
                for name, check in self._checks.items()
            }
            wait(futures.values(), timeout=self._timeout)
        finally:
            # Hung checks are abandoned, not joined.
            executor.shutdown(wait=False, cancel_futures=True)

        components: dict[str, ComponentHealth] = {}
        for name, future in futures.items():
            if future.done():
                components[name] = future.result()
            else:
                components[name] = ComponentHealth(
                    component_name=name,
                    is_healthy=False,
                    status="Timeout",
                    response_time=timedelta(seconds=time.monotonic() - started),
                    last_checked=_now(),
                    error_message=f"Health check timed out after {self._timeout}s",
                )

        is_healthy = all(c.is_healthy for c in components.values())
        report = SystemHealthReport(
            is_healthy=is_healthy,
            overall_status="Healthy" if is_healthy else "Degraded",
            components=MappingProxyType(components),
            checked_at=_now(),
        )
        logger.info(
            "health_check_finished",
            overall_status=report.overall_status,
            unhealthy=[n for n, c in components.items() if not c.is_healthy],
        )
        return report

    def system_status(self) -> dict[str, Any]:
        """Summarize the system for the status endpoint."""
        report = self.check_system_health()
        return {
            "system_name": SYSTEM_NAME,
            "version": self._version,
            "environment": self._environment,
            "timestamp": _now(),
            "health": report,
            "components_count": len(report.components),
            "healthy_components": report.healthy_count,
        }


def _timed(name: str, check: HealthCheck) -> ComponentHealth:
    started = time.monotonic()
    try:
        healthy = bool(check())
    except Exception as exc:
        logger.warning("health_check_failed", component=name, error=str(exc))
        return ComponentHealth(
            component_name=name,
            is_healthy=False,
            status="Error",
            response_time=timedelta(seconds=time.monotonic() - started),
            last_checked=_now(),
            error_message=str(exc) or type(exc).__name__,
        )
    return ComponentHealth(
        component_name=name,
        is_healthy=healthy,
        status="Healthy" if healthy else "Unhealthy",
        response_time=timedelta(seconds=time.monotonic() - started),
        last_checked=_now(),
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)
