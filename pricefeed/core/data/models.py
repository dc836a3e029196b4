"""Canonical quote record produced by the normalizer and stored by the result cache."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from pricefeed.core.markets.registry import Exchange

HORIZONS = ("1d", "1m", "3m", "1y", "3y", "5y", "ytd", "max")


def _ts(d: datetime | None) -> float | None:
    return d.timestamp() if d is not None else None


def _dt(ts: float | None) -> datetime | None:
    return datetime.fromtimestamp(ts, tz=timezone.utc) if ts is not None else None


@dataclass(frozen=True)
class HorizonChange:
    pct: float
    date: datetime | None = None    # date of the reference price


@dataclass(frozen=True)
class PricePoint:
    date: datetime
    price: float
    adj_close: float | None = None


@dataclass(frozen=True)
class Dividend:
    date: datetime
    amount: float


@dataclass(frozen=True)
class Split:
    date: datetime
    numerator: float
    denominator: float


@dataclass
class NormalizedRecord:
    ticker: str
    price: float
    exchange: Exchange
    timestamp: datetime
    open_price: float | None = None
    name: str | None = None
    currency: str | None = None
    changes: dict[str, HorizonChange] = field(default_factory=dict)
    historical: list[PricePoint] = field(default_factory=list)
    dividends: list[Dividend] = field(default_factory=list)
    splits: list[Split] = field(default_factory=list)
    volume: float | None = None
    source: str = "Yahoo Finance"
    provider_symbol: str | None = None
    from_cache: bool = False

    def change(self, horizon: str) -> HorizonChange | None:
        return self.changes.get(horizon)

    def with_cache_flag(self) -> NormalizedRecord:
        return replace(self, from_cache=True)

    def to_dict(self) -> dict:
        """Plain dict with epoch-second timestamps, safe for msgpack/JSON."""
        return {
            "ticker": self.ticker,
            "price": self.price,
            "exchange": self.exchange.value,
            "timestamp": _ts(self.timestamp),
            "open_price": self.open_price,
            "name": self.name,
            "currency": self.currency,
            "changes": {h: {"pct": c.pct, "date": _ts(c.date)} for h, c in self.changes.items()},
            "historical": [[_ts(p.date), p.price, p.adj_close] for p in self.historical],
            "dividends": [[_ts(d.date), d.amount] for d in self.dividends],
            "splits": [[_ts(s.date), s.numerator, s.denominator] for s in self.splits],
            "volume": self.volume,
            "source": self.source,
            "provider_symbol": self.provider_symbol,
        }

    @classmethod
    def from_dict(cls, data: dict) -> NormalizedRecord:
        return cls(
            ticker=data["ticker"],
            price=data["price"],
            exchange=Exchange(data["exchange"]),
            timestamp=_dt(data["timestamp"]),
            open_price=data.get("open_price"),
            name=data.get("name"),
            currency=data.get("currency"),
            changes={
                h: HorizonChange(pct=c["pct"], date=_dt(c.get("date")))
                for h, c in (data.get("changes") or {}).items()
            },
            historical=[PricePoint(_dt(t), p, a) for t, p, a in data.get("historical") or []],
            dividends=[Dividend(_dt(t), a) for t, a in data.get("dividends") or []],
            splits=[Split(_dt(t), n, d) for t, n, d in data.get("splits") or []],
            volume=data.get("volume"),
            source=data.get("source", "Yahoo Finance"),
            provider_symbol=data.get("provider_symbol"),
        )
