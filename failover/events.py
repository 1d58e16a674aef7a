from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from typing import Any


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path(path: str) -> str:
    """Return a file path usable by sqlite.

    A missing bind-mounted file shows up as a directory inside containers;
    in that case the journal lives inside it.
    """
    p = os.path.abspath(path)
    if os.path.isdir(p):
        p = os.path.join(p, "failover-events.db")
    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)
    return p


class EventLog:
    """Append-only journal of pool changes, restarts and failures.

    Nothing here is read back by the reconciler. An empty path disables it.
    """

    def __init__(self, path: str):
        self.path = _resolve_db_path(path) if path else ""
        if self.enabled:
            self.init_db()

    @property
    def enabled(self) -> bool:
        return bool(self.path)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS events (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  ts TEXT NOT NULL,
                  level TEXT NOT NULL,
                  node TEXT,
                  pod TEXT,
                  message TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
                """
            )

    def record(self, level: str, message: str, node: str | None = None, pod: str | None = None) -> None:
        if not self.enabled:
            return
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, node, pod, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level.upper(), node, pod, message),
            )

    def latest(self, limit: int = 100) -> list[dict[str, Any]]:
        if not self.enabled:
            return []
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [dict(r) for r in rows]
