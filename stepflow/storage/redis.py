"""Redis implementation of snapshot storage."""

from __future__ import annotations

from typing import Any, List, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from ..constants import DEFAULT_REDIS_PREFIX
from ..models import BaseSnapshot, parse_snapshot
from .base import ListableStorage


class RedisStorage(ListableStorage):
    """Redis-backed snapshot storage, one JSON string per key."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        prefix: str = DEFAULT_REDIS_PREFIX,
        url: Optional[str] = None,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisStorage")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self.url = url
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        if self.url:
            self._redis = redis.Redis.from_url(self.url, decode_responses=True)
        else:
            self._redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    async def get(self, key: str) -> Optional[BaseSnapshot]:
        client = await self._client()
        data = await client.get(f"{self.prefix}{key}")
        if data is None:
            return None
        return parse_snapshot(data)

    async def set(self, key: str, value: BaseSnapshot) -> None:
        client = await self._client()
        await client.set(f"{self.prefix}{key}", parse_snapshot(value).model_dump_json())

    async def delete(self, key: str) -> None:
        client = await self._client()
        await client.delete(f"{self.prefix}{key}")

    async def keys(self, prefix: str = "") -> List[str]:
        client = await self._client()
        found = [
            k[len(self.prefix):]
            async for k in client.scan_iter(match=f"{self.prefix}{prefix}*")
        ]
        return sorted(found)
