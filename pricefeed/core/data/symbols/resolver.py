"""SymbolResolver — turns (ticker, exchange, group) into ordered Yahoo symbol candidates."""
import re
import threading

from pricefeed.core.data.symbols.forex import forex_candidates
from pricefeed.core.markets.registry import EXCHANGE_REGISTRY, Exchange, InstrumentGroup

# TASE index numbers have no generic Yahoo spelling; these are authoritative.
TICKER_OVERRIDES: dict[Exchange, dict[str, str]] = {
    Exchange.TASE: {
        "137": "^TA125.TA",
        "142": "TA35.TA",
        "143": "TA90.TA",
        "145": "TEL-TECH.TA",
        "147": "MIDCAP50.TA",
        "148": "TA-FIN.TA",
        "149": "ESTATE15.TA",
        "163": "MIDCAP120.TA",
        "164": "TA-BANKS.TA",
        "167": "TASEBM.TA",
        "168": "TA-COMP.TA",
        "169": "TA-TECH.TA",
        "170": "TA-OG.TA",
        "707": "TELBOND20.TA",
        "709": "TELBOND60.TA",
    },
}

_NUMERIC = re.compile(r"^\d+$")


def _is_provider_symbol(symbol: str) -> bool:
    return symbol.startswith("^") or symbol.endswith("=X") or symbol.endswith("=F")


class SymbolMemory:
    """Learned (exchange, ticker) -> provider symbol map. Thread-safe, never evicts."""

    def __init__(self):
        self._lock = threading.Lock()
        self._symbols: dict[str, str] = {}

    @staticmethod
    def key(ticker: str, exchange: Exchange) -> str:
        return f"{Exchange(exchange).value}:{ticker.upper()}"

    def get(self, ticker: str, exchange: Exchange) -> str | None:
        with self._lock:
            return self._symbols.get(self.key(ticker, exchange))

    def set(self, ticker: str, exchange: Exchange, symbol: str) -> None:
        with self._lock:
            self._symbols[self.key(ticker, exchange)] = symbol

    def clear(self) -> None:
        with self._lock:
            self._symbols.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._symbols)


class SymbolResolver:

    def __init__(
        self,
        memory: SymbolMemory | None = None,
        overrides: dict[Exchange, dict[str, str]] | None = None,
    ):
        self.memory = memory or SymbolMemory()
        self._overrides = TICKER_OVERRIDES if overrides is None else overrides

    def resolve_candidates(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
    ) -> list[str]:
        """
        Candidates in priority order: overrides, then symbols that are already
        in Yahoo format, then generated variants carrying the exchange suffix.
        """
        u = ticker.strip().upper()

        override = self._overrides.get(exchange, {}).get(u)
        if override:
            return [override]

        if _is_provider_symbol(u):
            return [u]

        # Numeric identifiers are only meaningful as TASE index numbers
        numeric = bool(_NUMERIC.match(u))
        if numeric and (exchange != Exchange.TASE or group != InstrumentGroup.INDEX):
            return []

        base = [u]
        if group == InstrumentGroup.INDEX:
            if not numeric:
                base.append(f"^{u}")
        elif group == InstrumentGroup.FOREX or exchange == Exchange.FOREX:
            # Currency pairs never take an exchange suffix
            return forex_candidates(u)
        elif group == InstrumentGroup.COMMODITY:
            base.append(f"{u}=F")

        config = EXCHANGE_REGISTRY.get(exchange)
        suffix = config.yahoo_suffix if config else ""
        if not suffix:
            return list(dict.fromkeys(base))
        return list(dict.fromkeys(c if c.endswith(suffix) else c + suffix for c in base))

    def learned(self, ticker: str, exchange: Exchange) -> str | None:
        return self.memory.get(ticker, exchange)

    def verified_symbol(self, ticker: str, exchange: Exchange) -> str | None:
        """The symbol that last worked for this ticker, else the best generated guess."""
        known = self.memory.get(ticker, exchange)
        if known:
            return known
        candidates = self.resolve_candidates(ticker, exchange)
        return candidates[0] if candidates else None

    def record_success(self, ticker: str, exchange: Exchange, symbol: str) -> None:
        self.memory.set(ticker, exchange, symbol)
