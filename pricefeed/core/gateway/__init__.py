"""Edge gateway — rule-validated, rate-limited, cached access to upstream data sources.

get_gateway() returns the process-wide EdgeGateway; the HTTP surface in
api/v2/gateway.py resolves it through FastAPI dependencies so tests can swap
in one with a fake transport.
"""

from pricefeed.core.config import settings
from pricefeed.core.data.cache.base import CacheStore, MemoryStore
from pricefeed.core.gateway.edge_cache import EdgeCache, EdgeGateway
from pricefeed.core.gateway.rate_limit import RateLimiter
from pricefeed.core.gateway.router import EdgeRouter


def _make_store() -> CacheStore:
    if settings.cache_backend == "redis":
        from pricefeed.core.data.cache.redis_cache import RedisStore
        return RedisStore(settings.redis_url, expire_seconds=7 * 24 * 3600)
    return MemoryStore()


_gateway = EdgeGateway(EdgeRouter(), EdgeCache(_make_store()), RateLimiter())


def get_gateway() -> EdgeGateway:
    """Return the shared edge gateway."""
    return _gateway
