"""CachedProvider — wraps any QuoteProvider with a ResultCache and a RequestDeduplicator."""
import structlog

from pricefeed.core.data.cache.result_cache import ResultCache
from pricefeed.core.data.dedup import RequestDeduplicator
from pricefeed.core.data.models import NormalizedRecord
from pricefeed.core.data.providers.base import QuoteProvider
from pricefeed.core.markets.registry import Exchange, InstrumentGroup

logger = structlog.get_logger()


class CachedProvider(QuoteProvider):
    """Decorator that checks the result cache before hitting the upstream provider."""

    def __init__(
        self,
        upstream: QuoteProvider,
        cache: ResultCache | None = None,
        dedup: RequestDeduplicator | None = None,
    ):
        self._upstream = upstream
        self.cache = cache or ResultCache()
        self.dedup = dedup or RequestDeduplicator()

    @property
    def name(self) -> str:
        return f"cached_{self._upstream.name}"

    def supports(self, exchange: Exchange) -> bool:
        return self._upstream.supports(exchange)

    async def fetch_quote(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
        range: str = "5y",
    ) -> NormalizedRecord | None:
        return await self.get_quote(ticker, exchange, group, range)

    async def get_quote(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
        range: str = "5y",
        force_refresh: bool = False,
    ) -> NormalizedRecord | None:
        if not self.supports(exchange):
            return None

        key = ResultCache.key_for(self._upstream.name, exchange, ticker, range)

        # Check cache first
        if not force_refresh:
            cached = await self.cache.get(key, range)
            if cached is not None:
                logger.info("cache.hit", ticker=ticker, exchange=exchange.value, range=range)
                return cached

        # One upstream fetch per key no matter how many callers are waiting
        logger.info("cache.miss", ticker=ticker, exchange=exchange.value, range=range)
        return await self.dedup.run(key, lambda: self._fetch_and_store(key, ticker, exchange, group, range))

    async def _fetch_and_store(
        self,
        key: str,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None,
        range: str,
    ) -> NormalizedRecord | None:
        record = await self._upstream.fetch_quote(ticker, exchange, group, range)
        if record is not None:
            await self.cache.put(key, record)
        return record
