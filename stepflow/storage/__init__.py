"""Snapshot storage backends for stepflow."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StepflowConfig, load_config
from ..constants import STORAGE_URL_ENV_VAR
from .base import ListableStorage, Storage
from .inmemory import MemoryStorage
from .sqlite import SQLiteStorage

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresStorage
except ImportError:  # pragma: no cover - optional dependency
    PostgresStorage = None  # type: ignore

from .redis import RedisStorage


def get_storage(
    url: Optional[str] = None, config: Optional[StepflowConfig] = None
) -> Storage:
    """Factory function to build a snapshot storage.

    The backend is selected from ``url`` which can be provided explicitly,
    via the ``STEPFLOW_STORAGE_URL`` environment variable, or from loaded
    configuration. When nothing is configured an in-memory storage is
    returned. Every call builds a new instance.
    """

    config = config or load_config()
    url = url or os.getenv(STORAGE_URL_ENV_VAR) or config.storage.url

    if not url or url == "memory://":
        return MemoryStorage()

    if url.startswith("sqlite://"):
        path = url.replace("sqlite://", "", 1)
        return SQLiteStorage(path)
    elif url.startswith("redis://") or url.startswith("rediss://"):
        redis_conf = config.storage.redis
        try:
            # a bare scheme means "use the redis section of the config"
            return RedisStorage(
                host=redis_conf.host,
                port=redis_conf.port,
                db=redis_conf.db,
                password=redis_conf.password,
                prefix=redis_conf.prefix,
                url=None if url == "redis://" else url,
            )
        except ImportError as exc:
            raise RuntimeError("Redis support not available") from exc
    elif url.startswith("postgres://") or url.startswith("postgresql://"):
        if PostgresStorage is None:
            raise RuntimeError("Postgres support not available")
        return PostgresStorage(url)
    else:
        raise ValueError(f"Unsupported storage backend: {url}")


__all__ = [
    "Storage",
    "ListableStorage",
    "MemoryStorage",
    "SQLiteStorage",
    "RedisStorage",
    "PostgresStorage",
    "get_storage",
]
