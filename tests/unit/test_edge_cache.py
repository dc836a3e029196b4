"""Unit tests for the edge cache and the gateway's rollback retry."""
import json
from datetime import date

import aiohttp
import pytest

from pricefeed.core.data.cache.base import MemoryStore
from pricefeed.core.gateway.edge_cache import (
    EdgeCache,
    EdgeGateway,
    HttpTransport,
    UpstreamResponse,
    cache_key,
    is_empty_listing,
)
from pricefeed.core.gateway.errors import RateLimitedError, UpstreamError
from pricefeed.core.gateway.rate_limit import RateLimiter
from pricefeed.core.gateway.router import EdgeRouter
from pricefeed.core.gateway.routes import ROUTES

MONDAY = date(2024, 6, 17)


def listing(rows: list) -> bytes:
    return json.dumps({"tradeSecuritiesList": {"result": rows}}).encode()


class FakeClock:

    def __init__(self):
        self.now = 1_718_000_000.0

    def __call__(self) -> float:
        return self.now


class FakeTransport(HttpTransport):
    """Answers from a callable(url) -> (status, body); raises when it returns an exception."""

    def __init__(self, respond):
        super().__init__(timeout_seconds=1)
        self._respond = respond
        self.requests = []

    async def send(self, req):
        self.requests.append(req)
        result = self._respond(req.url)
        if isinstance(result, Exception):
            raise result
        status, body = result
        return UpstreamResponse(status=status, body=body, content_type="application/json")


def ok(url):
    return 200, b'{"ok": true}'


# ── Cache keys and empty listings ────────────────────────────────────────


class TestCacheKey:

    def test_get_key_is_url(self):
        req = EdgeRouter().route("yahoo_hist", {"ticker": "AAPL"})
        assert cache_key(req) == req.url

    def test_post_body_folded_into_key(self):
        router = EdgeRouter()
        base = {"startYear": "2023", "startMonth": "1", "endYear": "2024", "endMonth": "1"}
        a = router.route("pensyanet_fund", {**base, "fundId": "100"}, today=MONDAY)
        b = router.route("pensyanet_fund", {**base, "fundId": "200"}, today=MONDAY)

        assert cache_key(a) != cache_key(b)
        assert "__body_fundIds=100" in cache_key(a)
        assert "__body_reportPeriodFrom.year=2023" in cache_key(a)

    def test_empty_listing_detection(self):
        route = ROUTES["tase_list_stocks"]
        assert is_empty_listing(route, 200, listing([]))
        assert not is_empty_listing(route, 200, listing([{"securityId": 1}]))
        assert not is_empty_listing(route, 500, listing([]))
        assert not is_empty_listing(route, 200, b"not json")
        assert not is_empty_listing(ROUTES["yahoo_hist"], 200, listing([]))


# ── EdgeCache ────────────────────────────────────────────────────────────


class TestEdgeCache:

    def setup_method(self):
        self.router = EdgeRouter()
        self.clock = FakeClock()

    @pytest.mark.asyncio
    async def test_miss_then_hit(self):
        transport = FakeTransport(ok)
        cache = EdgeCache(MemoryStore(), transport, clock=self.clock)
        req = self.router.route("yahoo_hist", {"ticker": "AAPL"})

        first = await cache.fetch(req)
        await cache.drain()
        second = await cache.fetch(req)

        assert first.cache_status == "MISS"
        assert second.cache_status == "HIT"
        assert second.json() == {"ok": True}
        assert second.ttl == req.route.ttl
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self):
        transport = FakeTransport(ok)
        cache = EdgeCache(MemoryStore(), transport, clock=self.clock)
        req = self.router.route("yahoo_hist", {"ticker": "AAPL"})

        await cache.fetch(req)
        await cache.drain()
        self.clock.now += req.route.ttl
        resp = await cache.fetch(req)

        assert resp.cache_status == "MISS"
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_error_status_passed_through_not_cached(self):
        transport = FakeTransport(lambda url: (503, b"unavailable"))
        store = MemoryStore()
        cache = EdgeCache(store, transport, clock=self.clock)
        req = self.router.route("yahoo_hist", {"ticker": "AAPL"})

        resp = await cache.fetch(req)
        await cache.drain()

        assert resp.status == 503
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_empty_listing_not_cached(self):
        store = MemoryStore()
        cache = EdgeCache(store, FakeTransport(lambda url: (200, listing([]))), clock=self.clock)

        await cache.fetch(self.router.route("tase_list_stocks", {}, today=MONDAY))
        await cache.drain()
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_store_load_failure_is_a_miss(self):
        class UnreadableStore(MemoryStore):
            async def load(self, key):
                raise ConnectionError("redis down")

        transport = FakeTransport(ok)
        cache = EdgeCache(UnreadableStore(), transport, clock=self.clock)

        resp = await cache.fetch(self.router.route("yahoo_hist", {"ticker": "AAPL"}))
        await cache.drain()

        assert resp.cache_status == "MISS"
        assert resp.json() == {"ok": True}
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_transport_failure_is_upstream_error(self):
        cache = EdgeCache(MemoryStore(), FakeTransport(lambda url: aiohttp.ClientConnectionError("refused")))
        with pytest.raises(UpstreamError) as exc:
            await cache.fetch(self.router.route("yahoo_hist", {"ticker": "AAPL"}))
        assert exc.value.status_code == 502


# ── EdgeGateway ──────────────────────────────────────────────────────────


class TestEdgeGateway:

    @pytest.mark.asyncio
    async def test_rollback_until_listing_has_rows(self):
        def respond(url):
            if url.endswith("/2024/06/12"):
                return 200, listing([{"securityId": 1}])
            return 200, listing([])

        transport = FakeTransport(respond)
        gateway = EdgeGateway(cache=EdgeCache(MemoryStore(), transport), limiter=RateLimiter(), max_rollbacks=3)

        resp = await gateway.fetch_through_cache("tase_list_stocks", {}, today=MONDAY)

        assert resp.json()["tradeSecuritiesList"]["result"] == [{"securityId": 1}]
        assert [r.url[-10:] for r in transport.requests] == ["2024/06/16", "2024/06/14", "2024/06/12"]

    @pytest.mark.asyncio
    async def test_rollback_is_bounded(self):
        transport = FakeTransport(lambda url: (200, listing([])))
        gateway = EdgeGateway(cache=EdgeCache(MemoryStore(), transport), limiter=RateLimiter(), max_rollbacks=3)

        resp = await gateway.fetch_through_cache("tase_list_stocks", {}, today=MONDAY)

        assert resp.status == 200
        assert resp.json()["tradeSecuritiesList"]["result"] == []
        assert len(transport.requests) == 4

    @pytest.mark.asyncio
    async def test_non_listing_routes_never_roll_back(self):
        transport = FakeTransport(lambda url: (200, listing([])))
        gateway = EdgeGateway(cache=EdgeCache(MemoryStore(), transport), limiter=RateLimiter())

        await gateway.fetch_through_cache("yahoo_hist", {"ticker": "AAPL"})
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_handle_applies_rate_limit(self):
        limiter = RateLimiter(short_window=300, short_limit=2, long_window=86400, long_limit=1000)
        gateway = EdgeGateway(cache=EdgeCache(MemoryStore(), FakeTransport(ok)), limiter=limiter)

        await gateway.handle("9.9.9.9", "yahoo_hist", {"ticker": "AAPL"})
        await gateway.handle("9.9.9.9", "yahoo_hist", {"ticker": "AAPL"})
        with pytest.raises(RateLimitedError) as exc:
            await gateway.handle("9.9.9.9", "yahoo_hist", {"ticker": "AAPL"})
        assert exc.value.status_code == 429
