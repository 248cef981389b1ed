"""Runtime settings read from ``POLIMARKET_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "POLIMARKET_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    data_dir: Path | None = None  # None keeps stock in memory
    low_stock_threshold: int = 10
    step_timeout: float = 5.0
    health_timeout: float = 2.0
    lock_timeout: float = 5.0
    log_level: str = "INFO"
    log_json: bool = False
    environment: str = "Development"

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        def raw(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        data_dir = raw("DATA_DIR")
        return Settings(
            data_dir=Path(data_dir).expanduser() if data_dir else None,
            low_stock_threshold=_int(raw("LOW_STOCK_THRESHOLD"), "LOW_STOCK_THRESHOLD", 10),
            step_timeout=_seconds(raw("STEP_TIMEOUT"), "STEP_TIMEOUT", 5.0),
            health_timeout=_seconds(raw("HEALTH_TIMEOUT"), "HEALTH_TIMEOUT", 2.0),
            lock_timeout=_seconds(raw("LOCK_TIMEOUT"), "LOCK_TIMEOUT", 5.0),
            log_level=(raw("LOG_LEVEL") or "INFO").upper(),
            log_json=_bool(raw("LOG_JSON"), "LOG_JSON"),
            environment=raw("ENVIRONMENT") or "Development",
        )


def _int(value: str | None, name: str, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from None
    if parsed < 0:
        raise ValueError(f"{ENV_PREFIX}{name} cannot be negative")
    return parsed


def _seconds(value: str | None, name: str, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from None
    if parsed <= 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be positive")
    return parsed


def _bool(value: str | None, name: str) -> bool:
    normalized = (value or "").strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")
