"""Storage abstraction for snapshot persistence."""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from ..models import BaseSnapshot


@runtime_checkable
class Storage(Protocol):
    """Protocol for snapshot persistence backends.

    Keys follow ``"{type}:{id}"``. Any object providing these three
    coroutines can be handed to a component.
    """

    async def get(self, key: str) -> Optional[BaseSnapshot]:
        """Return the snapshot stored under ``key`` or ``None``."""

    async def set(self, key: str, value: BaseSnapshot) -> None:
        """Persist ``value`` under ``key``."""

    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""


@runtime_checkable
class ListableStorage(Storage, Protocol):
    """Storage that can enumerate its keys."""

    async def keys(self, prefix: str = "") -> List[str]:
        """Return stored keys starting with ``prefix``, sorted."""
