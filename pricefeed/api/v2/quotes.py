"""Quote endpoints — normalized records (cache-first) and symbol candidates."""
from fastapi import APIRouter, Depends, Query

from pricefeed.api.v2.errors import not_found
from pricefeed.api.v2.models import Candidates, Quote
from pricefeed.core.data import get_provider, get_resolver
from pricefeed.core.data.providers.router import ProviderRouter
from pricefeed.core.data.symbols.resolver import SymbolResolver
from pricefeed.core.markets.registry import parse_exchange, parse_group

router = APIRouter(tags=["Quotes"])


@router.get("/quotes/{ticker}", response_model=Quote)
async def get_quote(
    ticker: str,
    exchange: str = Query("NASDAQ"),
    group: str | None = Query(None),
    range: str = Query("5y"),
    force_refresh: bool = Query(False),
    history: bool = Query(True, description="Include the daily price series"),
    provider: ProviderRouter = Depends(get_provider),
):
    """Latest price and multi-horizon changes for one instrument."""
    ex = parse_exchange(exchange)
    record = await provider.get_quote(ticker, ex, parse_group(group), range, force_refresh)
    if record is None:
        return not_found(f"No data for {ticker} on {ex.value}")
    return Quote.from_record(record, include_history=history)


@router.get("/symbols/candidates", response_model=Candidates)
async def symbol_candidates(
    ticker: str = Query(...),
    exchange: str = Query("NASDAQ"),
    group: str | None = Query(None),
    resolver: SymbolResolver = Depends(get_resolver),
):
    """Yahoo symbols that would be tried for an instrument, in priority order."""
    ex = parse_exchange(exchange)
    grp = parse_group(group)
    return Candidates(
        ticker=ticker,
        exchange=ex.value,
        group=grp.value if grp else None,
        candidates=resolver.resolve_candidates(ticker, ex, grp),
        verified=resolver.verified_symbol(ticker, ex),
    )
