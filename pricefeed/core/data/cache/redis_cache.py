"""Redis-backed store using MessagePack serialisation."""
from typing import Any

import msgpack
import redis.asyncio as redis

from pricefeed.core.data.cache.base import CacheEntry, CacheStore


class RedisStore(CacheStore):

    PREFIX = "pricefeed:"

    def __init__(self, redis_url: str = "redis://localhost:6379", expire_seconds: int = 7 * 24 * 3600):
        self.client = redis.from_url(redis_url)
        # Redis-side expiry only bounds memory; freshness is decided by the caller's TTL
        self.expire_seconds = expire_seconds

    async def load(self, key: str) -> CacheEntry | None:
        raw = await self.client.get(self.PREFIX + key)
        if not raw:
            return None
        value = msgpack.unpackb(raw, raw=False)
        return CacheEntry(key, value["timestamp"], value["data"])

    async def save(self, key: str, data: Any, timestamp: float) -> None:
        await self.client.setex(
            self.PREFIX + key,
            self.expire_seconds,
            msgpack.packb({"timestamp": timestamp, "data": data}, use_bin_type=True),
        )

    async def delete(self, key: str) -> None:
        await self.client.delete(self.PREFIX + key)

    async def clear(self) -> None:
        async for k in self.client.scan_iter(match=self.PREFIX + "*"):
            await self.client.delete(k)

    async def close(self) -> None:
        await self.client.aclose()
