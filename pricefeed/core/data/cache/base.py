"""Key -> {timestamp, data} stores backing the result and edge caches."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    key: str
    timestamp: float    # epoch seconds
    data: Any


class CacheStore(ABC):

    @abstractmethod
    async def load(self, key: str) -> CacheEntry | None:
        ...

    @abstractmethod
    async def save(self, key: str, data: Any, timestamp: float) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...


class MemoryStore(CacheStore):
    """Process-local store. Keys are independent; no eviction."""

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    async def load(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def save(self, key: str, data: Any, timestamp: float) -> None:
        self._entries[key] = CacheEntry(key, timestamp, data)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
