"""CBS price indices — paginated JSON through the ``cbs_price_index`` route.

The bureau rebases its indices every few years and reports each month on the
base in force at the time. Levels are chain-linked onto the oldest base so the
series is continuous.
"""
import asyncio
import re

import aiohttp
import structlog

from pricefeed.core.data.fund_history import month_end, record_from_levels
from pricefeed.core.data.gateway_client import GatewayClient
from pricefeed.core.data.models import NormalizedRecord
from pricefeed.core.data.providers.base import QuoteProvider
from pricefeed.core.markets.registry import Exchange, InstrumentGroup

logger = structlog.get_logger()

CBS_ROUTE = "cbs_price_index"
MAX_PAGES = 50

CBS_INDICES: dict[str, str] = {
    "120010": "Israel Consumer Price Index",
    "120460": "Israel Housing Rental Price Index",
    "400100": "Israel House Prices Index, National",
    "60000": "Israel House Prices Index, Jerusalem",
    "60100": "House Prices Index, North",
    "60200": "House Prices Index, Haifa",
    "60300": "House Prices Index, Center",
    "60400": "House Prices Index, Tel Aviv",
    "60500": "House Prices Index, South",
    "70000": "House Prices Index, New Construction",
    "121360": "Israel Consumer Price Index: Car Ownership",
    "140704": "Israel Consumer Price Index: New Cars",
    "140690": "Israel Consumer Price Index: Car Fuel and Oils",
    "150050": "Israel Consumer Price Index: Tomatoes",
    "150060": "Israel Consumer Price Index: Cucumbers",
    "150270": "Israel Consumer Price Index: Canned Cucumbers",
    "120070": "Israel Consumer Price Index: Bread",
    "120320": "Israel Consumer Price Index: Coffee",
    "121440": "Israel Consumer Price Index: Cigarettes and Tobacco",
    "140220": "Israel Consumer Price Index: Beer",
}

HEBREW_MONTHS: dict[str, int] = {
    "ינואר": 1, "פברואר": 2, "מרץ": 3, "מרס": 3, "אפריל": 4, "מאי": 5, "יוני": 6,
    "יולי": 7, "אוגוסט": 8, "ספטמבר": 9, "אוקטובר": 10, "נובמבר": 11, "דצמבר": 12,
}
YEAR_AVERAGE = "ממוצע"

_YEAR = re.compile(r"\d{4}")


def _base_level(desc: str, by_month: dict[tuple[int, int], float], by_year: dict[int, list[float]]) -> float:
    """Level, in the current chain, of the period a new base is defined by."""
    m = _YEAR.search(desc)
    if m is None:
        raise ValueError(f"No year in base description {desc!r}")
    year = int(m.group(0))
    if YEAR_AVERAGE in desc:
        values = by_year.get(year)
        if not values:
            raise ValueError(f"No data for the {year} average base")
        return sum(values) / len(values)
    month = next((HEBREW_MONTHS[w] for w in desc.split() if w in HEBREW_MONTHS), None)
    if month is None or (year, month) not in by_month:
        raise ValueError(f"No data for base month {desc!r}")
    return by_month[(year, month)]


def chain_link(points: list[dict]) -> list[tuple]:
    """
    Raw ``{year, month, currBase: {value, baseDesc}}`` points -> (month end, level).

    When the base description changes, later values are scaled by the level
    of the new base period (a month, or a year's average) over 100.
    Raises ValueError when that period is missing from the series.
    """
    ordered = sorted(points, key=lambda p: (int(p["year"]), int(p["month"])))
    if not ordered:
        return []
    factor = 1.0
    base = ordered[0]["currBase"]["baseDesc"]
    by_month: dict[tuple[int, int], float] = {}
    by_year: dict[int, list[float]] = {}
    levels = []
    for p in ordered:
        year, month = int(p["year"]), int(p["month"])
        desc = p["currBase"]["baseDesc"]
        if desc != base:
            factor = _base_level(desc, by_month, by_year) / 100
            base = desc
        value = float(p["currBase"]["value"]) * factor
        by_month[(year, month)] = value
        by_year.setdefault(year, []).append(value)
        levels.append((month_end(year, month), round(value, 2)))
    return levels


class CbsProvider(QuoteProvider):

    def __init__(self, client: GatewayClient | None = None):
        self._client = client or GatewayClient()

    @property
    def name(self) -> str:
        return "cbs"

    def supports(self, exchange: Exchange) -> bool:
        return exchange == Exchange.CBS

    async def fetch_quote(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
        range: str = "5y",
    ) -> NormalizedRecord | None:
        index_id = ticker.strip()
        if not index_id.isdigit():
            return None
        try:
            points = await self._fetch_series(index_id)
            levels = chain_link(points)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("provider.request_failed", provider=self.name, ticker=index_id, error=str(e))
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("provider.parse_failed", provider=self.name, ticker=index_id, error=str(e))
            return None

        record = record_from_levels(levels, index_id, Exchange.CBS, "CBS", name=CBS_INDICES.get(index_id))
        if record is None:
            logger.info("provider.no_result", provider=self.name, ticker=index_id)
        else:
            logger.info("provider.ok", provider=self.name, ticker=index_id, months=len(levels))
        return record

    async def _fetch_series(self, index_id: str) -> list[dict]:
        points: list[dict] = []
        for page in range(1, MAX_PAGES + 1):
            data = await self._client.get_json(CBS_ROUTE, {"id": index_id, "page": str(page)})
            months = data.get("month") if isinstance(data, dict) else None
            if not months:
                break
            points.extend(months[0].get("date") or [])
            paging = data.get("paging") or {}
            if int(paging.get("current_page", 0)) >= int(paging.get("last_page", 0)):
                break
        return points
