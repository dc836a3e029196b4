"""Unit tests for the Yahoo provider and the cache-first CachedProvider."""
import asyncio
from datetime import datetime, timezone

import aiohttp
import pytest

from pricefeed.core.data.cache.base import MemoryStore
from pricefeed.core.data.cache.result_cache import ResultCache
from pricefeed.core.data.gateway_client import GatewayClient
from pricefeed.core.data.models import HorizonChange, NormalizedRecord
from pricefeed.core.data.providers.base import QuoteProvider, first_match
from pricefeed.core.data.providers.cached import CachedProvider
from pricefeed.core.data.providers.yahoo import YahooProvider
from pricefeed.core.data.symbols.resolver import SymbolResolver
from pricefeed.core.markets.registry import Exchange, InstrumentGroup


def chart_payload(price: float, exchange_name: str = "NMS") -> dict:
    return {"chart": {"result": [{
        "meta": {"regularMarketPrice": price, "exchangeName": exchange_name, "currency": "USD"},
        "timestamp": [1718323200, 1718409600],
        "indicators": {"quote": [{"close": [price - 1, price]}]},
    }], "error": None}}


class FakeGatewayClient(GatewayClient):
    """Serves canned chart payloads per symbol; unknown symbols fail like a 404."""

    def __init__(self, payloads: dict[str, dict]):
        super().__init__(base_url="http://gateway.test")
        self.payloads = payloads
        self.calls: list[tuple[str, dict]] = []

    async def get_json(self, api_id, params):
        self.calls.append((api_id, params))
        symbol = params["ticker"]
        if symbol not in self.payloads:
            raise aiohttp.ClientError(f"404 for {symbol}")
        return self.payloads[symbol]

    @property
    def symbols(self) -> list[str]:
        return [p["ticker"] for _, p in self.calls]


# ── YahooProvider ────────────────────────────────────────────────────────


class TestYahooProvider:

    @pytest.mark.asyncio
    async def test_first_candidate_in_priority_order_wins(self):
        client = FakeGatewayClient({"GSPC": chart_payload(10.0), "^GSPC": chart_payload(5000.0)})
        provider = YahooProvider(client, SymbolResolver())

        record = await provider.fetch_quote("GSPC", Exchange.NYSE, InstrumentGroup.INDEX)

        assert record.price == 10.0
        assert record.provider_symbol == "GSPC"
        assert sorted(client.symbols) == ["GSPC", "^GSPC"]

    @pytest.mark.asyncio
    async def test_falls_through_failed_candidates_and_learns(self):
        client = FakeGatewayClient({"^GSPC": chart_payload(5000.0)})
        resolver = SymbolResolver()
        provider = YahooProvider(client, resolver)

        record = await provider.fetch_quote("GSPC", Exchange.NYSE, InstrumentGroup.INDEX, range="1y")

        assert record.provider_symbol == "^GSPC"
        assert resolver.learned("GSPC", Exchange.NYSE) == "^GSPC"
        assert all(api_id == "yahoo_hist" and p["range"] == "1y" for api_id, p in client.calls)

        # Next time only the learned symbol is fetched
        client.calls.clear()
        await provider.fetch_quote("GSPC", Exchange.NYSE, InstrumentGroup.INDEX)
        assert client.symbols == ["^GSPC"]

    @pytest.mark.asyncio
    async def test_numeric_ticker_makes_no_request(self):
        client = FakeGatewayClient({})
        provider = YahooProvider(client, SymbolResolver())

        assert await provider.fetch_quote("1081124", Exchange.TASE, InstrumentGroup.STOCK) is None
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_all_candidates_fail(self):
        client = FakeGatewayClient({})
        resolver = SymbolResolver()
        provider = YahooProvider(client, resolver)

        assert await provider.fetch_quote("NOPE", Exchange.LSE) is None
        assert resolver.learned("NOPE", Exchange.LSE) is None

    @pytest.mark.asyncio
    async def test_empty_chart_result_is_a_miss(self):
        client = FakeGatewayClient({"AAPL": {"chart": {"result": None, "error": {"code": "Not Found"}}}})
        assert await YahooProvider(client, SymbolResolver()).fetch_quote("AAPL", Exchange.NASDAQ) is None

    @pytest.mark.asyncio
    async def test_tase_override_symbol(self):
        client = FakeGatewayClient({"TA35.TA": chart_payload(2000.0, exchange_name="TLV")})
        record = await YahooProvider(client, SymbolResolver()).fetch_quote("142", Exchange.TASE, InstrumentGroup.INDEX)
        assert record.provider_symbol == "TA35.TA"
        assert record.exchange == Exchange.TASE
        assert record.ticker == "142"

    @pytest.mark.asyncio
    async def test_malformed_candidate_does_not_sink_the_others(self):
        client = FakeGatewayClient({
            "X.TA": {"chart": {"result": {"0": {}}}},
            "^X.TA": chart_payload(1900.0, exchange_name="TLV"),
        })
        resolver = SymbolResolver()

        record = await YahooProvider(client, resolver).fetch_quote("X", Exchange.TASE, InstrumentGroup.INDEX)

        assert sorted(client.symbols) == ["X.TA", "^X.TA"]
        assert record.provider_symbol == "^X.TA"
        assert record.price == 1900.0
        assert resolver.learned("X", Exchange.TASE) == "^X.TA"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        ["not", "a", "dict"],
        {"chart": "oops"},
        {"chart": {"result": ["not a dict"]}},
        {"chart": {"result": [{}]}},
    ])
    async def test_malformed_payload_is_a_miss(self, payload):
        client = FakeGatewayClient({"AAPL": payload})
        assert await YahooProvider(client, SymbolResolver()).fetch_quote("AAPL", Exchange.NASDAQ) is None

    def test_supports(self):
        provider = YahooProvider(FakeGatewayClient({}), SymbolResolver())
        assert provider.supports(Exchange.TASE)
        assert not provider.supports(Exchange.GEMEL)
        assert provider.name == "yahoo"

    def test_first_match(self):
        assert first_match([None, "b", "c"]) == "b"
        assert first_match([None, None]) is None


# ── CachedProvider ───────────────────────────────────────────────────────


class MockProvider(QuoteProvider):
    """Test helper — counts fetches and optionally returns nothing."""

    def __init__(self, empty: bool = False, delay: float = 0, with_max: bool = True, error: BaseException | None = None):
        self._empty = empty
        self._error = error
        self._delay = delay
        self._with_max = with_max
        self.call_count = 0

    @property
    def name(self) -> str:
        return "mock"

    def supports(self, exchange):
        return exchange != Exchange.PENSION

    async def fetch_quote(self, ticker, exchange, group=None, range="5y"):
        self.call_count += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        if self._empty:
            return None
        changes = {"1d": HorizonChange(0.01)}
        if self._with_max:
            changes["max"] = HorizonChange(1.5)
        return NormalizedRecord(
            ticker=ticker, price=42.0, exchange=exchange,
            timestamp=datetime.now(timezone.utc), changes=changes,
        )


class TestCachedProvider:

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self):
        upstream = MockProvider()
        provider = CachedProvider(upstream, ResultCache(MemoryStore()))

        first = await provider.get_quote("AAPL", Exchange.NASDAQ)
        second = await provider.get_quote("AAPL", Exchange.NASDAQ)

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.price == 42.0
        assert upstream.call_count == 1

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self):
        upstream = MockProvider()
        provider = CachedProvider(upstream, ResultCache(MemoryStore()))

        await provider.get_quote("AAPL", Exchange.NASDAQ)
        record = await provider.get_quote("AAPL", Exchange.NASDAQ, force_refresh=True)

        assert record.from_cache is False
        assert upstream.call_count == 2

    @pytest.mark.asyncio
    async def test_ranges_cached_separately(self):
        upstream = MockProvider()
        provider = CachedProvider(upstream, ResultCache(MemoryStore()))

        await provider.get_quote("AAPL", Exchange.NASDAQ, range="1y")
        await provider.get_quote("AAPL", Exchange.NASDAQ, range="5y")
        assert upstream.call_count == 2

    @pytest.mark.asyncio
    async def test_empty_result_not_cached(self):
        upstream = MockProvider(empty=True)
        provider = CachedProvider(upstream, ResultCache(MemoryStore()))

        assert await provider.get_quote("NOPE", Exchange.NASDAQ) is None
        assert await provider.get_quote("NOPE", Exchange.NASDAQ) is None
        assert upstream.call_count == 2

    @pytest.mark.asyncio
    async def test_unsupported_exchange(self):
        upstream = MockProvider()
        provider = CachedProvider(upstream)
        assert await provider.get_quote("X", Exchange.PENSION) is None
        assert upstream.call_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self):
        upstream = MockProvider(delay=0.01)
        provider = CachedProvider(upstream, ResultCache(MemoryStore()))

        records = await asyncio.gather(*(provider.get_quote("AAPL", Exchange.NASDAQ) for _ in range(10)))

        assert all(r.price == 42.0 for r in records)
        assert upstream.call_count == 1
        assert len(provider.dedup) == 0

    @pytest.mark.asyncio
    async def test_narrow_cached_record_not_served_for_max(self):
        upstream = MockProvider(with_max=False)
        provider = CachedProvider(upstream, ResultCache(MemoryStore()))

        await provider.get_quote("AAPL", Exchange.NASDAQ, range="max")
        await provider.get_quote("AAPL", Exchange.NASDAQ, range="max")
        assert upstream.call_count == 2

    def test_name(self):
        assert CachedProvider(MockProvider()).name == "cached_mock"

    @pytest.mark.asyncio
    async def test_failed_fetch_writes_nothing(self):
        store = MemoryStore()
        upstream = MockProvider(error=aiohttp.ClientConnectionError("reset by peer"))
        provider = CachedProvider(upstream, ResultCache(store))

        with pytest.raises(aiohttp.ClientConnectionError):
            await provider.get_quote("AAPL", Exchange.NASDAQ)
        assert len(store) == 0
        assert len(provider.dedup) == 0

    @pytest.mark.asyncio
    async def test_cancelled_fetch_writes_nothing(self):
        store = MemoryStore()
        upstream = MockProvider(delay=0.01, error=asyncio.CancelledError())
        provider = CachedProvider(upstream, ResultCache(store))

        with pytest.raises(asyncio.CancelledError):
            await provider.get_quote("AAPL", Exchange.NASDAQ)
        assert len(store) == 0
        assert len(provider.dedup) == 0

        # The next caller starts a fresh fetch
        upstream._error = None
        record = await provider.get_quote("AAPL", Exchange.NASDAQ)
        assert record.from_cache is False
        assert upstream.call_count == 2
        assert len(store) == 1
