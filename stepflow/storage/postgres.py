"""PostgreSQL implementation of snapshot storage."""

from __future__ import annotations

from typing import List, Optional

import asyncpg

from ..models import BaseSnapshot, parse_snapshot
from .base import ListableStorage


class PostgresStorage(ListableStorage):
    """Persist snapshots using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS stepflow_snapshots (
                key TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                data JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )

    # ------------------------------------------------------------------
    async def get(self, key: str) -> Optional[BaseSnapshot]:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT data::text AS data FROM stepflow_snapshots WHERE key = $1", key
            )
        finally:
            await conn.close()
        if not row:
            return None
        return parse_snapshot(row["data"])

    async def set(self, key: str, value: BaseSnapshot) -> None:
        snapshot = parse_snapshot(value)
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO stepflow_snapshots (key, type, data, updated_at)
                VALUES ($1, $2, $3::jsonb, now())
                ON CONFLICT (key) DO UPDATE
                SET type = EXCLUDED.type, data = EXCLUDED.data, updated_at = now()
                """,
                key,
                snapshot.type,
                snapshot.model_dump_json(),
            )
        finally:
            await conn.close()

    async def delete(self, key: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute("DELETE FROM stepflow_snapshots WHERE key = $1", key)
        finally:
            await conn.close()

    async def keys(self, prefix: str = "") -> List[str]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT key FROM stepflow_snapshots WHERE starts_with(key, $1) ORDER BY key",
                prefix,
            )
        finally:
            await conn.close()
        return [r["key"] for r in rows]
