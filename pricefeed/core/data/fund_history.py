"""Monthly series -> NormalizedRecord.

Regulator fund reports carry one nominal monthly return per month; the CBS
publishes index levels. Returns are compounded into a price index that starts
at 100, levels are used as prices directly, and horizon changes are looked up
by calendar month rather than by nearest timestamp.
"""
import calendar
from datetime import datetime, timezone

from pricefeed.core.data.models import HorizonChange, NormalizedRecord, PricePoint
from pricefeed.core.markets.registry import Exchange

START_LEVEL = 100.0

# horizon -> months back from the latest reported month
MONTH_LOOKBACKS: dict[str, int] = {
    "1m": 1,
    "3m": 3,
    "1y": 12,
    "3y": 36,
    "5y": 60,
}

Month = tuple[int, int]


def month_end(year: int, month: int) -> datetime:
    return datetime(year, month, calendar.monthrange(year, month)[1], tzinfo=timezone.utc)


def parse_report_month(value: str | None) -> datetime | None:
    """``YYYYMM`` -> last day of that month (UTC); None when malformed."""
    value = (value or "").strip()
    if len(value) != 6 or not value.isdigit():
        return None
    year, month = int(value[:4]), int(value[4:])
    if not 1 <= month <= 12:
        return None
    return month_end(year, month)


def months_back(d: datetime, months: int) -> Month:
    index = d.year * 12 + d.month - 1 - months
    return index // 12, index % 12 + 1


def _pct(latest: float, base: PricePoint) -> HorizonChange | None:
    if not base.price:
        return None
    return HorizonChange(latest / base.price - 1, base.date)


def month_changes(by_month: dict[Month, PricePoint], latest: PricePoint) -> dict[str, HorizonChange]:
    changes = {}
    for horizon, months in MONTH_LOOKBACKS.items():
        base = by_month.get(months_back(latest.date, months))
        change = _pct(latest.price, base) if base is not None else None
        if change is not None:
            changes[horizon] = change
    return changes


def _level_before(point: PricePoint, pct: float) -> PricePoint | None:
    """Level at the start of the month whose return was `pct`."""
    growth = 1 + pct / 100
    return PricePoint(point.date, point.price / growth) if growth else None


def _by_month(points: list[PricePoint]) -> dict[Month, PricePoint]:
    return {(p.date.year, p.date.month): p for p in points}


def record_from_returns(
    returns: list[tuple[datetime, float]],
    ticker: str,
    exchange: Exchange,
    source: str,
    name: str | None = None,
    today: datetime | None = None,
) -> NormalizedRecord | None:
    """
    Monthly nominal returns in percent -> record priced off a compounded index.

    The year-to-date change of a fund that has not reported this calendar year
    yet is zero. Otherwise it is measured from last December, or from the level
    before the first report of the year when December is missing. The max
    change is measured from the level before the first reported month.
    """
    if not returns:
        return None
    ordered = sorted(returns, key=lambda r: r[0])
    level = START_LEVEL
    historical = []
    for d, pct in ordered:
        level *= 1 + pct / 100
        historical.append(PricePoint(d, level))

    by_month = _by_month(historical)
    latest = historical[-1]
    changes = month_changes(by_month, latest)

    today = today or datetime.now(timezone.utc)
    if latest.date.year < today.year:
        changes["ytd"] = HorizonChange(0.0, datetime(today.year, 1, 1, tzinfo=timezone.utc))
    else:
        base = by_month.get((latest.date.year - 1, 12))
        if base is None:
            i = next(i for i, (d, _) in enumerate(ordered) if d.year == latest.date.year)
            base = _level_before(historical[i], ordered[i][1])
        ytd = _pct(latest.price, base) if base is not None else None
        if ytd is not None:
            changes["ytd"] = ytd

    start = _level_before(historical[0], ordered[0][1])
    max_change = _pct(latest.price, start) if start is not None else None
    if max_change is not None:
        changes["max"] = max_change

    return NormalizedRecord(
        ticker=ticker,
        price=latest.price,
        exchange=exchange,
        timestamp=latest.date,
        name=name or None,
        currency="ILS",
        changes=changes,
        historical=historical,
        source=source,
    )


def record_from_levels(
    levels: list[tuple[datetime, float]],
    ticker: str,
    exchange: Exchange,
    source: str,
    name: str | None = None,
) -> NormalizedRecord | None:
    """Monthly index levels -> record whose price is the latest level."""
    if not levels:
        return None
    historical = [PricePoint(d, value) for d, value in sorted(levels, key=lambda r: r[0])]
    by_month = _by_month(historical)
    latest = historical[-1]
    changes = month_changes(by_month, latest)

    december = by_month.get((latest.date.year - 1, 12))
    ytd = _pct(latest.price, december) if december is not None else None
    if ytd is not None:
        changes["ytd"] = ytd
    max_change = _pct(latest.price, historical[0])
    if max_change is not None:
        changes["max"] = max_change

    return NormalizedRecord(
        ticker=ticker,
        price=latest.price,
        exchange=exchange,
        timestamp=latest.date,
        name=name or None,
        currency="ILS",
        changes=changes,
        historical=historical,
        source=source,
    )
