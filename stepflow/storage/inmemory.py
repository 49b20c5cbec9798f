"""In-memory implementation of snapshot storage."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..models import BaseSnapshot, parse_snapshot
from .base import ListableStorage


class MemoryStorage(ListableStorage):
    """Store snapshots in local memory.

    Useful for tests or when no storage is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._data: Dict[str, BaseSnapshot] = {}

    async def get(self, key: str) -> Optional[BaseSnapshot]:
        value = self._data.get(key)
        return None if value is None else value.model_copy(deep=True)

    async def set(self, key: str, value: BaseSnapshot) -> None:
        # frozen models still hold mutable input, output and meta values
        self._data[key] = parse_snapshot(value).model_copy(deep=True)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))
