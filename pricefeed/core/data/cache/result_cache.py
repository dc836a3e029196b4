"""ResultCache — TTL-checked NormalizedRecord cache over any CacheStore."""
import time
from typing import Callable

import structlog

from pricefeed.core.data.cache.base import CacheStore, MemoryStore
from pricefeed.core.data.models import NormalizedRecord
from pricefeed.core.markets.registry import Exchange

logger = structlog.get_logger()

CACHE_TTL_SECONDS = 5 * 60


class ResultCache:

    def __init__(
        self,
        store: CacheStore | None = None,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or MemoryStore()
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @staticmethod
    def key_for(provider: str, exchange: Exchange, ticker: str, range: str) -> str:
        return f"{provider}:quote:v3:{Exchange(exchange).value}:{ticker}:{range}"

    async def get(self, key: str, range: str) -> NormalizedRecord | None:
        """
        Fresh record for `key`, or None.

        A record fetched for a narrower range has no max-horizon change and is
        never served for a "max" request.
        """
        try:
            entry = await self.store.load(key)
        except Exception as e:
            logger.warning("cache.load_failed", key=key, error=str(e))
            return None
        if entry is None:
            return None
        age = self._clock() - entry.timestamp
        if age >= self.ttl_seconds:
            logger.debug("cache.expired", key=key, age=round(age, 1))
            return None
        try:
            record = NormalizedRecord.from_dict(entry.data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("cache.decode_failed", key=key, error=str(e))
            return None
        if range == "max" and record.change("max") is None:
            return None
        logger.debug("cache.hit", key=key)
        return record.with_cache_flag()

    async def put(self, key: str, record: NormalizedRecord, timestamp: float | None = None) -> None:
        ts = self._clock() if timestamp is None else timestamp
        try:
            await self.store.save(key, record.to_dict(), ts)
            logger.debug("cache.stored", key=key)
        except Exception as e:
            logger.warning("cache.save_failed", key=key, error=str(e))
