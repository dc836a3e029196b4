"""ProviderRouter — picks the quote source for an exchange and merges Globes with Yahoo."""
import asyncio
from dataclasses import replace

import structlog

from pricefeed.core.data.models import NormalizedRecord
from pricefeed.core.data.providers.cached import CachedProvider
from pricefeed.core.markets.registry import Exchange, InstrumentGroup

logger = structlog.get_logger()

# Globes snapshots do not depend on the requested range; one cache entry serves all
SNAPSHOT_RANGE = "5y"


def merge_records(globes: NormalizedRecord | None, yahoo: NormalizedRecord | None) -> NormalizedRecord | None:
    """
    Globes first, Yahoo fills what Globes lacks.

    Globes has no price series, so history, dividends and splits normally come
    from Yahoo, as do horizons Globes does not report (5y, max).
    """
    if globes is None:
        return yahoo
    if yahoo is None:
        return globes
    return replace(
        globes,
        name=globes.name or yahoo.name,
        currency=globes.currency or yahoo.currency,
        open_price=globes.open_price if globes.open_price is not None else yahoo.open_price,
        volume=globes.volume if globes.volume is not None else yahoo.volume,
        changes={**yahoo.changes, **globes.changes},
        historical=globes.historical or yahoo.historical,
        dividends=globes.dividends or yahoo.dividends,
        splits=globes.splits or yahoo.splits,
        source=f"{globes.source} + {yahoo.source}",
        provider_symbol=yahoo.provider_symbol,
        from_cache=yahoo.from_cache,
    )


class ProviderRouter:
    """
    Fund and index series exchanges go to their dedicated provider. Listed
    instruments are fetched from Yahoo and Globes concurrently and merged; a
    source that fails only drops out of the merge.
    """

    def __init__(
        self,
        yahoo: CachedProvider,
        globes: CachedProvider | None = None,
        series: list[CachedProvider] | None = None,
    ):
        self.yahoo = yahoo
        self.globes = globes
        # Index: exchange -> dedicated provider
        self._series: dict[Exchange, CachedProvider] = {
            ex: p for p in series or [] for ex in Exchange if p.supports(ex)
        }

    @property
    def name(self) -> str:
        return "router"

    def supports(self, exchange: Exchange) -> bool:
        return exchange in self._series or self.yahoo.supports(exchange)

    def provider_for(self, exchange: Exchange) -> CachedProvider | None:
        return self._series.get(exchange)

    async def get_quote(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
        range: str = "5y",
        force_refresh: bool = False,
    ) -> NormalizedRecord | None:
        dedicated = self._series.get(exchange)
        if dedicated is not None:
            return await dedicated.get_quote(ticker, exchange, group, range, force_refresh)

        if self.globes is None or not self.globes.supports(exchange):
            return await self.yahoo.get_quote(ticker, exchange, group, range, force_refresh)

        yahoo, globes = await asyncio.gather(
            self.yahoo.get_quote(ticker, exchange, group, range, force_refresh),
            self.globes.get_quote(ticker, exchange, group, SNAPSHOT_RANGE, force_refresh),
            return_exceptions=True,
        )
        record = merge_records(self._settled("globes", globes), self._settled("yahoo", yahoo))
        if record is None:
            logger.info("router.no_result", ticker=ticker, exchange=exchange.value)
        return record

    @staticmethod
    def _settled(source: str, result) -> NormalizedRecord | None:
        if isinstance(result, BaseException):
            logger.warning("provider.failed", provider=source, error=str(result))
            return None
        return result
