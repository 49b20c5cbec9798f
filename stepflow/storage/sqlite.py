"""SQLite implementation of snapshot storage."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from ..models import BaseSnapshot, parse_snapshot
from .base import ListableStorage


class SQLiteStorage(ListableStorage):
    """Persist snapshots using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS snapshots (
                key TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    # ------------------------------------------------------------------
    # Storage API
    async def get(self, key: str) -> Optional[BaseSnapshot]:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM snapshots WHERE key = ?", key
        )
        if not row:
            return None
        return parse_snapshot(row["data"])

    async def set(self, key: str, value: BaseSnapshot) -> None:
        snapshot = parse_snapshot(value)
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO snapshots (key, type, data, updated_at) VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                type = excluded.type,
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            key,
            snapshot.type,
            snapshot.model_dump_json(),
            datetime.now(timezone.utc).isoformat(),
        )

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._execute, "DELETE FROM snapshots WHERE key = ?", key)

    async def keys(self, prefix: str = "") -> List[str]:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT key FROM snapshots WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
            f"{escaped}%",
        )
        return [row["key"] for row in rows]

    def close(self) -> None:
        self._conn.close()
