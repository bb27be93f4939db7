"""Local event journal.

Every reconcile result and bootstrap milestone is appended here so the probe
API (and the CLI on top of it) can show what the operator has been doing.
The journal is diagnostic only; all cluster state lives in Kubernetes.
"""
from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone

from .settings import settings

logger = logging.getLogger(__name__)

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    A bind-mounted path that did not exist on the host shows up as a directory
    inside the container; in that case the journal file is placed inside it.
    """
    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "citus-operator.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    if not settings.enable_journal:
        return
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              namespace TEXT,
              name TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            """
        )


def log_event(level: str, message: str, namespace: str | None = None, name: str | None = None) -> None:
    """Log through ``logging`` and append to the journal when it is enabled."""
    level = level.upper()
    prefix = f"[{namespace}/{name}] " if name else ""
    logger.log(_LEVELS.get(level, logging.INFO), "%s%s", prefix, message)

    if not settings.enable_journal:
        return
    try:
        with connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, namespace, name, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level, namespace, name, message),
            )
    except sqlite3.Error as e:
        # The journal must never take the control loop down.
        logger.warning("event journal write failed: %s", e)


@dataclass(frozen=True)
class EventRow:
    id: int
    ts: str
    level: str
    namespace: str | None
    name: str | None
    message: str


def list_events(limit: int = 50) -> list[EventRow]:
    if not settings.enable_journal:
        return []
    limit = max(1, min(1000, int(limit)))
    with connect() as conn:
        cur = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,))
        return [EventRow(**dict(r)) for r in cur.fetchall()]
