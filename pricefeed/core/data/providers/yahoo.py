"""Yahoo Finance provider — chart API through the edge gateway's ``yahoo_hist`` route."""
import asyncio

import aiohttp
import structlog

from pricefeed.core.data.gateway_client import GatewayClient
from pricefeed.core.data.models import NormalizedRecord
from pricefeed.core.data.normalizer import normalize_chart
from pricefeed.core.data.providers.base import QuoteProvider, first_match
from pricefeed.core.data.symbols.resolver import SymbolResolver
from pricefeed.core.markets.registry import EXCHANGE_REGISTRY, Exchange, InstrumentGroup

logger = structlog.get_logger()

YAHOO_ROUTE = "yahoo_hist"


class YahooProvider(QuoteProvider):

    def __init__(self, client: GatewayClient | None = None, resolver: SymbolResolver | None = None):
        self._client = client or GatewayClient()
        self.resolver = resolver or SymbolResolver()

    @property
    def name(self) -> str:
        return "yahoo"

    def supports(self, exchange: Exchange) -> bool:
        config = EXCHANGE_REGISTRY.get(exchange)
        return bool(config and config.yahoo_listed)

    def candidates(self, ticker: str, exchange: Exchange, group: InstrumentGroup | None) -> list[str]:
        known = self.resolver.learned(ticker, exchange)
        return [known] if known else self.resolver.resolve_candidates(ticker, exchange, group)

    async def fetch_quote(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
        range: str = "5y",
    ) -> NormalizedRecord | None:
        candidates = self.candidates(ticker, exchange, group)
        if not candidates:
            logger.info("provider.no_candidates", provider=self.name, ticker=ticker, exchange=exchange.value)
            return None

        # Every candidate is fetched at once; losers are simply ignored
        results = await asyncio.gather(*(self._fetch_candidate(c, range) for c in candidates))
        match = first_match(results)
        if match is None:
            logger.info("provider.no_result", provider=self.name, ticker=ticker, candidates=candidates)
            return None

        symbol, result = match
        self.resolver.record_success(ticker, exchange, symbol)
        logger.info("provider.ok", provider=self.name, ticker=ticker, symbol=symbol)
        return normalize_chart(result, ticker, exchange, provider_symbol=symbol)

    async def _fetch_candidate(self, symbol: str, range: str) -> tuple[str, dict] | None:
        try:
            data = await self._client.get_json(YAHOO_ROUTE, {"ticker": symbol, "range": range})
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug("provider.candidate_failed", provider=self.name, symbol=symbol, error=str(e))
            return None
        chart = data.get("chart") if isinstance(data, dict) else None
        results = chart.get("result") if isinstance(chart, dict) else None
        if not isinstance(results, list) or not results or not isinstance(results[0], dict) or not results[0]:
            logger.debug("provider.candidate_malformed", provider=self.name, symbol=symbol)
            return None
        return symbol, results[0]
