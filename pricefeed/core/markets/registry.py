"""
Exchange Registry — single source of truth for exchange metadata.
Adding a new exchange = add one Exchange member and one ExchangeConfig entry here.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum


class Exchange(str, Enum):
    NASDAQ = "NASDAQ"
    NYSE = "NYSE"
    TASE = "TASE"           # Tel Aviv
    LSE = "LSE"
    FWB = "FWB"             # Frankfurt
    EURONEXT = "EURONEXT"
    JPX = "JPX"
    HKEX = "HKEX"
    TSX = "TSX"
    ASX = "ASX"
    GEMEL = "GEMEL"         # provident funds, not exchange traded
    PENSION = "PENSION"
    FOREX = "FOREX"         # pseudo-exchange for currency pairs and crypto
    CBS = "CBS"             # consumer price index series


class InstrumentGroup(str, Enum):
    STOCK = "STOCK"
    ETF = "ETF"
    MUTUAL_FUND = "MUTUAL_FUND"
    BOND = "BOND"
    SAVING = "SAVING"
    DERIVATIVE = "DERIVATIVE"
    FOREX = "FOREX"
    INDEX = "INDEX"
    COMMODITY = "COMMODITY"
    OTHER = "OTHER"


@dataclass(frozen=True)
class ExchangeConfig:
    code:           Exchange
    name:           str
    yahoo_suffix:   str                   # appended to generated Yahoo symbols
    google_code:    str                   # Google Finance prefix, "" if unlisted
    aliases:        tuple[str, ...] = field(default_factory=tuple)
    yahoo_listed:   bool = True           # False = never ask Yahoo for it


EXCHANGE_REGISTRY: dict[Exchange, ExchangeConfig] = {
    Exchange.NASDAQ: ExchangeConfig(
        code=Exchange.NASDAQ, name="Nasdaq", yahoo_suffix="", google_code="NASDAQ",
        aliases=("XNAS", "NMS", "NGS", "NCM", "NIM", "BTS", "BATS"),
    ),
    Exchange.NYSE: ExchangeConfig(
        code=Exchange.NYSE, name="New York Stock Exchange", yahoo_suffix="", google_code="NYSE",
        aliases=("XNYS", "ARCA", "WCB", "ASE", "AMEX", "NYQ", "PCX"),
    ),
    Exchange.TASE: ExchangeConfig(
        code=Exchange.TASE, name="Tel Aviv Stock Exchange", yahoo_suffix=".TA", google_code="TLV",
        aliases=("XTAE", "TLV", "TA"),
    ),
    Exchange.LSE: ExchangeConfig(
        code=Exchange.LSE, name="London Stock Exchange", yahoo_suffix=".L", google_code="LON",
        aliases=("XLON", "LONDON"),
    ),
    Exchange.FWB: ExchangeConfig(
        code=Exchange.FWB, name="Frankfurt Stock Exchange", yahoo_suffix=".F", google_code="FRA",
        aliases=("XFRA", "FRANKFURT", "XETRA"),
    ),
    Exchange.EURONEXT: ExchangeConfig(
        code=Exchange.EURONEXT, name="Euronext", yahoo_suffix=".PA", google_code="EPA",
        aliases=("XPAR", "XAMS", "XBRU", "XLIS", "XDUB"),
    ),
    Exchange.JPX: ExchangeConfig(
        code=Exchange.JPX, name="Japan Exchange Group", yahoo_suffix=".T", google_code="TYO",
        aliases=("XTKS",),
    ),
    Exchange.HKEX: ExchangeConfig(
        code=Exchange.HKEX, name="Hong Kong Exchanges", yahoo_suffix=".HK", google_code="HKG",
        aliases=("XHKG",),
    ),
    Exchange.TSX: ExchangeConfig(
        code=Exchange.TSX, name="Toronto Stock Exchange", yahoo_suffix=".TO", google_code="TSE",
        aliases=("XTSE",),
    ),
    Exchange.ASX: ExchangeConfig(
        code=Exchange.ASX, name="Australian Securities Exchange", yahoo_suffix=".AX", google_code="ASX",
        aliases=("XASX",),
    ),
    Exchange.GEMEL: ExchangeConfig(
        code=Exchange.GEMEL, name="Provident funds", yahoo_suffix="", google_code="",
        yahoo_listed=False,
    ),
    Exchange.PENSION: ExchangeConfig(
        code=Exchange.PENSION, name="Pension funds", yahoo_suffix="", google_code="",
        yahoo_listed=False,
    ),
    Exchange.FOREX: ExchangeConfig(
        code=Exchange.FOREX, name="Currencies", yahoo_suffix="=X", google_code="",
        aliases=("FX", "CURRENCY", "CRYPTO", "CC", "CCC"),
    ),
    Exchange.CBS: ExchangeConfig(
        code=Exchange.CBS, name="Central Bureau of Statistics", yahoo_suffix="", google_code="",
        aliases=("CPI", "MADAD"),
        yahoo_listed=False,
    ),
}

# Upper-cased alias -> canonical exchange, built once from the registry.
_ALIASES: dict[str, Exchange] = {
    alias.upper(): cfg.code
    for cfg in EXCHANGE_REGISTRY.values()
    for alias in cfg.aliases
}


def parse_exchange(code: str) -> Exchange:
    """Map an exchange name or provider alias ('NMS', 'xtae', ...) to an Exchange."""
    if not code or not code.strip():
        raise ValueError("Empty exchange code")
    normalized = code.strip().upper()
    try:
        return Exchange(normalized)
    except ValueError:
        pass
    try:
        return _ALIASES[normalized]
    except KeyError:
        valid = [e.value for e in EXCHANGE_REGISTRY]
        raise ValueError(f"Unknown exchange '{code}'. Valid: {valid}")


def get_exchange(code: str) -> ExchangeConfig:
    return EXCHANGE_REGISTRY[parse_exchange(code)]


def parse_group(value: str | None) -> InstrumentGroup | None:
    if not value:
        return None
    try:
        return InstrumentGroup(value.strip().upper())
    except ValueError:
        valid = [g.value for g in InstrumentGroup]
        raise ValueError(f"Unknown instrument group '{value}'. Valid: {valid}")


def list_exchanges() -> list[dict]:
    """Serialisable list for /api/v2/exchanges endpoint."""
    return [
        {
            "code":         cfg.code.value,
            "name":         cfg.name,
            "yahoo_suffix": cfg.yahoo_suffix,
            "google_code":  cfg.google_code,
            "aliases":      list(cfg.aliases),
            "yahoo_listed": cfg.yahoo_listed,
        }
        for cfg in EXCHANGE_REGISTRY.values()
    ]
