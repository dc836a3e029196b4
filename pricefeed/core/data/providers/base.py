"""Abstract QuoteProvider — every quote source implements this."""
from abc import ABC, abstractmethod
from typing import Iterable, TypeVar

from pricefeed.core.data.models import NormalizedRecord
from pricefeed.core.markets.registry import Exchange, InstrumentGroup

T = TypeVar("T")


def first_match(results: Iterable[T | None]) -> T | None:
    """First non-None result, in the order given (i.e. candidate priority order)."""
    return next((r for r in results if r is not None), None)


class QuoteProvider(ABC):

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique key, also the cache-key prefix: 'yahoo'"""
        ...

    @abstractmethod
    def supports(self, exchange: Exchange) -> bool:
        ...

    @abstractmethod
    async def fetch_quote(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
        range: str = "5y",
    ) -> NormalizedRecord | None:
        """Fresh record from upstream, or None when no candidate yields a price."""
        ...
