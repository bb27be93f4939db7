from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Apply / reconcile
    field_manager: str = os.getenv("CITUS_FIELD_MANAGER", "citus_apply")
    requeue_s: float = _env_float("CITUS_REQUEUE_S", 10.0)
    error_requeue_s: float = _env_float("CITUS_ERROR_REQUEUE_S", 1.0)
    establish_timeout_s: float = _env_float("CITUS_ESTABLISH_TIMEOUT_S", 10.0)

    # Empty means "all namespaces" for watches and "<primary>-inner" for the dependent name.
    watch_namespace: str = os.getenv("CITUS_WATCH_NAMESPACE", "")
    dependent_name: str = os.getenv("CITUS_DEPENDENT_NAME", "")

    workers: int = _env_int("CITUS_WORKERS", 2)
    watch_timeout_s: int = _env_int("CITUS_WATCH_TIMEOUT_S", 60)

    # Diagnostics
    probe_port: int = _env_int("CITUS_PROBE_PORT", 8080)
    log_level: str = os.getenv("CITUS_LOG_LEVEL", "INFO")
    enable_journal: bool = _env_bool("CITUS_ENABLE_JOURNAL", True)
    db_path: str = os.getenv("CITUS_DB_PATH", "citus-operator.db")


settings = Settings()
