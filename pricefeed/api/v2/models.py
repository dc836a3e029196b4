"""Pydantic response models."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from pricefeed.core.data.models import NormalizedRecord


class Change(BaseModel):
    pct: float
    date: datetime | None = None


class HistoricalPoint(BaseModel):
    date: datetime
    price: float
    adj_close: float | None = None


class DividendOut(BaseModel):
    date: datetime
    amount: float


class SplitOut(BaseModel):
    date: datetime
    numerator: float
    denominator: float


class Quote(BaseModel):
    ticker: str
    price: float
    exchange: str
    timestamp: datetime
    open_price: float | None = None
    name: str | None = None
    currency: str | None = None
    changes: dict[str, Change] = Field(default_factory=dict)
    historical: list[HistoricalPoint] = Field(default_factory=list)
    dividends: list[DividendOut] = Field(default_factory=list)
    splits: list[SplitOut] = Field(default_factory=list)
    volume: float | None = None
    source: str
    provider_symbol: str | None = None
    from_cache: bool = False

    @classmethod
    def from_record(cls, r: NormalizedRecord, include_history: bool = True) -> Quote:
        return cls(
            ticker=r.ticker,
            price=r.price,
            exchange=r.exchange.value,
            timestamp=r.timestamp,
            open_price=r.open_price,
            name=r.name,
            currency=r.currency,
            changes={h: Change(pct=c.pct, date=c.date) for h, c in r.changes.items()},
            historical=[HistoricalPoint(date=p.date, price=p.price, adj_close=p.adj_close) for p in r.historical]
            if include_history else [],
            dividends=[DividendOut(date=d.date, amount=d.amount) for d in r.dividends],
            splits=[SplitOut(date=s.date, numerator=s.numerator, denominator=s.denominator) for s in r.splits],
            volume=r.volume,
            source=r.source,
            provider_symbol=r.provider_symbol,
            from_cache=r.from_cache,
        )


class Candidates(BaseModel):
    ticker: str
    exchange: str
    group: str | None = None
    candidates: list[str]
    verified: str | None = None
