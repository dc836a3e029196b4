"""Edge cache in front of every upstream call, plus the gateway's retry policy.

Flow per request: rate limit -> route -> cache lookup -> upstream -> background
store. Listing routes whose payload comes back empty are re-routed with the
trading date rolled back, a bounded number of times.
"""
import asyncio
import json
import time
from dataclasses import dataclass
from typing import Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import aiohttp
import structlog

from pricefeed.core.config import settings
from pricefeed.core.data.cache.base import CacheStore, MemoryStore
from pricefeed.core.gateway.errors import RateLimitedError, UpstreamError
from pricefeed.core.gateway.params import ROLLBACK_STEP_DAYS
from pricefeed.core.gateway.rate_limit import RateLimiter
from pricefeed.core.gateway.router import EdgeRouter, UpstreamRequest
from pricefeed.core.gateway.routes import Route

logger = structlog.get_logger()


@dataclass(frozen=True)
class UpstreamResponse:
    status: int
    body: bytes
    content_type: str


@dataclass(frozen=True)
class CachedResponse:
    status: int
    body: bytes
    content_type: str
    cache_status: str       # "HIT" | "MISS"
    ttl: int

    def json(self):
        return json.loads(self.body)


def _flatten(value, prefix: str = "") -> list[tuple[str, str]]:
    if isinstance(value, dict):
        items = []
        for k, v in value.items():
            items.extend(_flatten(v, f"{prefix}.{k}" if prefix else str(k)))
        return items
    if isinstance(value, (list, tuple)):
        return [(prefix, ",".join(str(v) for v in value))]
    return [(prefix, str(value))]


def cache_key(req: UpstreamRequest) -> str:
    """
    The upstream URL; for POST routes the body's fields are folded in as
    extra query parameters so GET and POST of one logical request share a key.
    """
    if not req.body:
        return req.url
    parts = urlsplit(req.url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((f"__body_{k}", v) for k, v in sorted(_flatten(req.body)))
    return urlunsplit(parts._replace(query=urlencode(query)))


def is_empty_listing(route: Route, status: int, body: bytes) -> bool:
    """True when a date-sensitive listing came back OK but with no rows."""
    if not route.empty_result_path or status >= 400:
        return False
    try:
        node = json.loads(body)
    except ValueError:
        return False
    for step in route.empty_result_path:
        if not isinstance(node, dict) or step not in node:
            return False
        node = node[step]
    return isinstance(node, list) and len(node) == 0


class HttpTransport:
    """aiohttp transport to the real upstreams."""

    def __init__(self, timeout_seconds: float | None = None):
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds or settings.request_timeout_seconds)

    async def send(self, req: UpstreamRequest) -> UpstreamResponse:
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.request(req.method, req.url, headers=req.headers, json=req.body) as resp:
                body = await resp.read()
                return UpstreamResponse(
                    status=resp.status,
                    body=body,
                    content_type=resp.headers.get("Content-Type", "application/octet-stream"),
                )


class EdgeCache:

    def __init__(
        self,
        store: CacheStore | None = None,
        transport: HttpTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or MemoryStore()
        self._transport = transport or HttpTransport()
        self._clock = clock
        self._pending_writes: set[asyncio.Task] = set()

    async def fetch(self, req: UpstreamRequest) -> CachedResponse:
        key = cache_key(req)
        ttl = req.route.ttl

        try:
            entry = await self.store.load(key)
        except Exception as e:
            logger.warning("edge.load_failed", key=key, error=str(e))
            entry = None
        if entry is not None and self._clock() - entry.timestamp < ttl:
            logger.debug("edge.hit", api_id=req.route.api_id, key=key)
            d = entry.data
            return CachedResponse(d["status"], d["body"], d["content_type"], "HIT", ttl)

        try:
            upstream = await self._transport.send(req)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("edge.upstream_failed", api_id=req.route.api_id, error=str(e))
            raise UpstreamError(f"Upstream request failed for '{req.route.api_id}'", error=str(e))

        logger.info("edge.miss", api_id=req.route.api_id, status=upstream.status)
        if upstream.status < 400 and not is_empty_listing(req.route, upstream.status, upstream.body):
            self._store_later(key, upstream)
        return CachedResponse(upstream.status, upstream.body, upstream.content_type, "MISS", ttl)

    def _store_later(self, key: str, upstream: UpstreamResponse) -> None:
        # The caller gets its response without waiting for the write
        data = {"status": upstream.status, "body": upstream.body, "content_type": upstream.content_type}
        task = asyncio.create_task(self._store(key, data, self._clock()))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _store(self, key: str, data: dict, timestamp: float) -> None:
        try:
            await self.store.save(key, data, timestamp)
        except Exception as e:
            logger.warning("edge.store_failed", key=key, error=str(e))

    async def drain(self) -> None:
        """Wait for background cache writes (shutdown and tests)."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes)


class EdgeGateway:

    def __init__(
        self,
        router: EdgeRouter | None = None,
        cache: EdgeCache | None = None,
        limiter: RateLimiter | None = None,
        max_rollbacks: int | None = None,
    ):
        self.router = router or EdgeRouter()
        self.cache = cache or EdgeCache()
        self.limiter = limiter or RateLimiter()
        self.max_rollbacks = settings.max_rollbacks if max_rollbacks is None else max_rollbacks

    async def handle(self, client_id: str, api_id: str, params: dict[str, str]) -> CachedResponse:
        if not self.limiter.admit(client_id):
            logger.warning("gateway.rate_limited", client=client_id, api_id=api_id)
            raise RateLimitedError("Too many requests", client=client_id)
        return await self.fetch_through_cache(api_id, params)

    async def fetch_through_cache(self, api_id: str, params: dict[str, str], today=None) -> CachedResponse:
        attempt = 0
        while True:
            req = self.router.route(api_id, params, today=today, rollback_days=attempt * ROLLBACK_STEP_DAYS)
            resp = await self.cache.fetch(req)
            if not is_empty_listing(req.route, resp.status, resp.body):
                return resp
            if attempt >= self.max_rollbacks:
                logger.warning("gateway.rollback_exhausted", api_id=api_id, attempts=attempt + 1)
                return resp
            attempt += 1
            logger.info("gateway.rollback", api_id=api_id, attempt=attempt, trade_date=req.params.get("day"))
