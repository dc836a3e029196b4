"""Yahoo chart payload -> NormalizedRecord.

Only the price is mandatory. Every derived field (daily change, horizon
changes, dividends, splits, volume, exchange) is computed independently and
simply left out when the payload does not support it.
"""
from datetime import datetime, timezone
from typing import Any, Callable

import polars as pl
import structlog

from pricefeed.core.data.models import Dividend, HorizonChange, NormalizedRecord, PricePoint, Split
from pricefeed.core.dates import shift_back
from pricefeed.core.markets.registry import Exchange, parse_exchange

logger = structlog.get_logger()

# horizon -> (months, years) to step back from the last data point
LOOKBACKS: dict[str, tuple[int, int]] = {
    "1m": (1, 0),
    "3m": (3, 0),
    "1y": (0, 1),
    "3y": (0, 3),
    "5y": (0, 5),
}

_POINTS_SCHEMA = {"ts": pl.Int64, "close": pl.Float64, "adj_close": pl.Float64}


def _utc(ts: int | float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _num(value: Any) -> float | None:
    return float(value) if value is not None else None


def _last(values: list | None):
    return values[-1] if values else None


def _derive(field: str, fn: Callable, *args, default=None):
    try:
        return fn(*args)
    except Exception as e:
        logger.debug("normalize.field_failed", field=field, error=str(e))
        return default


def build_points(result: dict) -> pl.DataFrame:
    """(ts, close, adj_close) rows with a timestamp and a close, in payload order."""
    timestamps = result.get("timestamp") or []
    indicators = result.get("indicators") or {}
    quote = (indicators.get("quote") or [{}])[0] or {}
    closes = quote.get("close") or []
    if not closes or len(timestamps) != len(closes):
        return pl.DataFrame(schema=_POINTS_SCHEMA)
    adj = ((indicators.get("adjclose") or [{}])[0] or {}).get("adjclose") or []
    adj = (list(adj) + [None] * len(closes))[: len(closes)]
    df = pl.DataFrame(
        {
            "ts": [int(t) if t is not None else None for t in timestamps],
            "close": [_num(c) for c in closes],
            "adj_close": [_num(a) for a in adj],
        },
        schema=_POINTS_SCHEMA,
    )
    return df.drop_nulls(["ts", "close"])


def nearest_point(points: pl.DataFrame, target_ts: int) -> dict:
    """Row whose timestamp is closest to `target_ts`; the earliest row wins ties."""
    idx = (points["ts"] - target_ts).abs().arg_min()
    return points.row(idx, named=True)


def _change(current: float, point: dict) -> HorizonChange:
    base = point["close"]
    return HorizonChange(pct=(current - base) / base, date=_utc(point["ts"]))


def horizon_changes(points: pl.DataFrame, price: float) -> dict[str, HorizonChange]:
    if points.is_empty():
        return {}
    last_dt = _utc(points["ts"][-1])
    targets = {
        h: int(shift_back(last_dt, months, years).timestamp())
        for h, (months, years) in LOOKBACKS.items()
    }
    targets["ytd"] = int(datetime(last_dt.year, 1, 1, tzinfo=timezone.utc).timestamp())

    changes: dict[str, HorizonChange] = {}
    for h, target in targets.items():
        change = _derive(h, lambda t: _change(price, nearest_point(points, t)), target)
        if change is not None:
            changes[h] = change
    earliest = _derive("max", _change, price, points.row(0, named=True))
    if earliest is not None:
        changes["max"] = earliest
    return changes


def daily_change(meta: dict, price: float, closes: list) -> HorizonChange | None:
    prev = meta.get("previousClose")
    if prev:
        return HorizonChange(pct=(price - prev) / prev)
    chart_prev = meta.get("chartPreviousClose")
    if chart_prev and meta.get("dataGranularity") == "1d":
        return HorizonChange(pct=(price - chart_prev) / chart_prev)
    valid = [c for c in closes if c is not None]
    if len(valid) >= 2:
        return HorizonChange(pct=(price - valid[-2]) / valid[-2])
    return None


def parse_dividends(events: dict) -> list[Dividend]:
    divs = [Dividend(date=_utc(d["date"]), amount=float(d["amount"])) for d in (events.get("dividends") or {}).values()]
    return sorted(divs, key=lambda d: d.date, reverse=True)


def parse_splits(events: dict) -> list[Split]:
    splits = [
        Split(date=_utc(s["date"]), numerator=float(s["numerator"]), denominator=float(s["denominator"]))
        for s in (events.get("splits") or {}).values()
    ]
    return sorted(splits, key=lambda s: s.date, reverse=True)


def resolve_exchange(meta: dict, requested: Exchange) -> Exchange:
    try:
        return parse_exchange(meta.get("exchangeName") or "OTHER")
    except (ValueError, AttributeError, TypeError):
        return requested


def estimate_volume(meta: dict, quote: dict, price: float) -> float | None:
    shares = meta.get("regularMarketVolume") or _last(quote.get("volume"))
    return shares * price if shares else None


def normalize_chart(
    result: dict,
    ticker: str,
    exchange: Exchange,
    provider_symbol: str | None = None,
    now: datetime | None = None,
) -> NormalizedRecord | None:
    """One element of Yahoo's ``chart.result`` -> NormalizedRecord, or None without a price."""
    try:
        meta = result.get("meta") or {}
        price = _num(meta.get("regularMarketPrice"))
    except (AttributeError, TypeError, ValueError) as e:
        logger.warning("normalize.price_failed", ticker=ticker, error=str(e))
        return None
    if not price:
        logger.info("normalize.no_price", ticker=ticker, exchange=exchange.value)
        return None

    quote = _derive("quote", lambda: ((result.get("indicators") or {}).get("quote") or [{}])[0])
    if not isinstance(quote, dict):
        quote = {}
    points = _derive("points", build_points, result, default=None)
    if points is None:
        points = pl.DataFrame(schema=_POINTS_SCHEMA)

    changes = _derive("horizons", horizon_changes, points, price, default={})
    one_day = _derive("1d", daily_change, meta, price, quote.get("close") or [])
    if one_day is not None:
        changes["1d"] = one_day

    events = result.get("events")
    if not isinstance(events, dict):
        events = {}
    return NormalizedRecord(
        ticker=ticker,
        price=price,
        exchange=resolve_exchange(meta, exchange),
        timestamp=now or datetime.now(timezone.utc),
        open_price=_derive("open", lambda: _num(_last(quote.get("open")))),
        name=meta.get("longName") or meta.get("shortName"),
        currency=meta.get("currency"),
        changes=changes,
        historical=_derive(
            "historical",
            lambda: [PricePoint(_utc(r["ts"]), r["close"], r["adj_close"]) for r in points.iter_rows(named=True)],
            default=[],
        ),
        dividends=_derive("dividends", parse_dividends, events, default=[]),
        splits=_derive("splits", parse_splits, events, default=[]),
        volume=_derive("volume", estimate_volume, meta, quote, price),
        provider_symbol=provider_symbol,
    )
