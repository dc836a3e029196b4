"""Data layer — cache-first quote access.

Design: ALL quote access goes through get_provider(), which returns a
ProviderRouter over one CachedProvider per source.  Provident funds, pension
funds and CBS indices each have a dedicated source; listed instruments are
read from Yahoo and Globes at once and merged.  Every source checks the
shared result cache first; only on a miss (or a stale / too-narrow entry)
does a request go out through the edge gateway, and concurrent misses for the
same key share one fetch.  The learned-symbol memory lives on the shared
resolver, so a symbol that worked once is fetched alone next time.
"""

from pricefeed.core.config import settings
from pricefeed.core.data.cache.base import CacheStore, MemoryStore
from pricefeed.core.data.cache.result_cache import ResultCache
from pricefeed.core.data.gateway_client import GatewayClient
from pricefeed.core.data.providers.cached import CachedProvider
from pricefeed.core.data.providers.cbs import CbsProvider
from pricefeed.core.data.providers.funds import GemelnetProvider, PensyanetProvider
from pricefeed.core.data.providers.globes import GlobesProvider
from pricefeed.core.data.providers.router import ProviderRouter
from pricefeed.core.data.providers.yahoo import YahooProvider
from pricefeed.core.data.symbols.resolver import SymbolResolver


def _make_store() -> CacheStore:
    if settings.cache_backend == "file":
        from pricefeed.core.data.cache.file_cache import FileStore
        return FileStore(settings.cache_dir)
    if settings.cache_backend == "redis":
        from pricefeed.core.data.cache.redis_cache import RedisStore
        return RedisStore(settings.redis_url)
    return MemoryStore()


# Singleton instances shared across the process
_resolver = SymbolResolver()
_cache = ResultCache(_make_store(), ttl_seconds=settings.quote_cache_ttl_seconds)
_client = GatewayClient()
_default_provider = ProviderRouter(
    yahoo=CachedProvider(YahooProvider(_client, resolver=_resolver), _cache),
    globes=CachedProvider(GlobesProvider(_client), _cache),
    series=[
        CachedProvider(GemelnetProvider(_client), _cache),
        CachedProvider(PensyanetProvider(_client), _cache),
        CachedProvider(CbsProvider(_client), _cache),
    ],
)


def get_provider() -> ProviderRouter:
    """Return the default cache-first quote provider."""
    return _default_provider


def get_cache() -> ResultCache:
    """Return the shared result cache instance."""
    return _cache


def get_resolver() -> SymbolResolver:
    """Return the shared symbol resolver (and its learned-symbol memory)."""
    return _resolver
