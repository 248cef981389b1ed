"""Health report value objects, recomputed on every check."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class ComponentHealth:
    component_name: str
    is_healthy: bool
    status: str  # Healthy | Unhealthy | Error | Timeout
    response_time: timedelta
    last_checked: datetime
    error_message: str | None = None


@dataclass(frozen=True)
class SystemHealthReport:
    is_healthy: bool
    overall_status: str  # Healthy | Degraded
    components: Mapping[str, ComponentHealth]
    checked_at: datetime

    @property
    def healthy_count(self) -> int:
        return sum(1 for c in self.components.values() if c.is_healthy)
