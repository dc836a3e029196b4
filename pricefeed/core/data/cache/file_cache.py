"""File-based MessagePack store — one file per cache key."""
import asyncio
import hashlib
from pathlib import Path
from typing import Any

import msgpack

from pricefeed.core.data.cache.base import CacheEntry, CacheStore


class FileStore(CacheStore):

    def __init__(self, cache_dir: str = "./data/cache"):
        self.dir = Path(cache_dir)
        self.dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)[:80]
        digest = hashlib.sha256(key.encode()).hexdigest()[:12]
        return self.dir / f"{safe}_{digest}.msgpack"

    # Disk IO runs on the default executor so the event loop never blocks

    async def load(self, key: str) -> CacheEntry | None:
        p = self._path(key)
        try:
            blob = await asyncio.to_thread(p.read_bytes)
        except FileNotFoundError:
            return None
        raw = msgpack.unpackb(blob, raw=False)
        return CacheEntry(key, raw["timestamp"], raw["data"])

    async def save(self, key: str, data: Any, timestamp: float) -> None:
        p = self._path(key)
        blob = msgpack.packb({"timestamp": timestamp, "data": data}, use_bin_type=True)
        await asyncio.to_thread(p.write_bytes, blob)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)

    async def clear(self) -> None:
        paths = await asyncio.to_thread(lambda: list(self.dir.glob("*.msgpack")))
        for p in paths:
            await asyncio.to_thread(p.unlink, missing_ok=True)
