"""Regulator fund reports — Gemelnet (provident funds) and Pensyanet (pension funds).

Both publish XML with one row per fund and month; the fund's nominal monthly
return is compounded into a price index by ``fund_history``. Fund names come
from the matching list route and are optional.
"""
import asyncio
from datetime import datetime, timezone
from xml.etree import ElementTree

import aiohttp
import structlog

from pricefeed.core.data.fund_history import parse_report_month, record_from_returns
from pricefeed.core.data.gateway_client import GatewayClient
from pricefeed.core.data.models import NormalizedRecord
from pricefeed.core.data.providers.base import QuoteProvider
from pricefeed.core.dates import shift_back
from pricefeed.core.markets.registry import Exchange, InstrumentGroup

logger = structlog.get_logger()

HISTORY_START = datetime(2000, 1, 1, tzinfo=timezone.utc)


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def xml_rows(xml_text: str, row_tag: str) -> list[dict[str, str]]:
    """Every ``row_tag`` element as {child tag: text}, namespaces ignored."""
    root = ElementTree.fromstring(xml_text)
    return [
        {local_name(child.tag): (child.text or "").strip() for child in el}
        for el in root.iter()
        if local_name(el.tag) == row_tag
    ]


def period_params(start: datetime, end: datetime) -> dict[str, str]:
    return {
        "startYear": str(start.year),
        "startMonth": f"{start.month:02d}",
        "endYear": str(end.year),
        "endMonth": f"{end.month:02d}",
    }


def _float(value: str) -> float:
    try:
        return float(value) if value else 0.0
    except ValueError:
        return 0.0


class FundReportProvider(QuoteProvider):
    """Shared fetch and parse flow; subclasses name the routes and XML fields."""

    exchange: Exchange
    source: str
    fund_route: str
    list_route: str
    row_tag: str
    name_field: str
    # Gemelnet answers with every fund in the query; Pensyanet only the one asked for
    fund_id_field: str | None = None

    def __init__(self, client: GatewayClient | None = None, clock=None):
        self._client = client or GatewayClient()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def supports(self, exchange: Exchange) -> bool:
        return exchange == self.exchange

    async def fetch_quote(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
        range: str = "5y",
    ) -> NormalizedRecord | None:
        fund_id = ticker.strip()
        if not fund_id.isdigit():
            logger.info("provider.bad_fund_id", provider=self.name, ticker=ticker)
            return None

        now = self._clock()
        history, names = await asyncio.gather(
            self._text(self.fund_route, {**period_params(HISTORY_START, now), "fundId": fund_id}),
            self.fund_names(now),
        )
        if history is None:
            return None
        try:
            returns = self.parse_returns(history, fund_id)
        except ElementTree.ParseError as e:
            logger.warning("provider.parse_failed", provider=self.name, ticker=fund_id, error=str(e))
            return None

        record = record_from_returns(returns, fund_id, self.exchange, self.source, name=names.get(fund_id), today=now)
        if record is None:
            logger.info("provider.no_result", provider=self.name, ticker=fund_id)
        else:
            logger.info("provider.ok", provider=self.name, ticker=fund_id, months=len(returns))
        return record

    def parse_returns(self, xml_text: str, fund_id: str) -> list[tuple[datetime, float]]:
        returns = []
        for row in xml_rows(xml_text, self.row_tag):
            if self.fund_id_field and row.get(self.fund_id_field, "").lstrip("0") != fund_id.lstrip("0"):
                continue
            month = parse_report_month(row.get("TKF_DIVUACH"))
            if month is not None:
                returns.append((month, _float(row.get("TSUA_NOMINALI_BFOAL", ""))))
        return returns

    async def fund_names(self, now: datetime) -> dict[str, str]:
        """fund id -> name from the last year's fund list; empty when unavailable."""
        text = await self._text(self.list_route, period_params(shift_back(now, years=1), now))
        if text is None:
            return {}
        try:
            rows = xml_rows(text, self.row_tag)
        except ElementTree.ParseError as e:
            logger.warning("provider.list_parse_failed", provider=self.name, error=str(e))
            return {}
        names: dict[str, str] = {}
        for row in rows:
            fund_id = row.get("ID", "")
            if fund_id and fund_id not in names:
                names[fund_id] = row.get(self.name_field, "")
        return names

    async def _text(self, api_id: str, params: dict[str, str]) -> str | None:
        try:
            return await self._client.get_text(api_id, params)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("provider.request_failed", provider=self.name, api_id=api_id, error=str(e))
            return None


class GemelnetProvider(FundReportProvider):
    exchange = Exchange.GEMEL
    source = "Gemelnet"
    fund_route = "gemelnet_fund"
    list_route = "gemelnet_list"
    row_tag = "Row"
    name_field = "SHM_KUPA"
    fund_id_field = "ID_KUPA"

    @property
    def name(self) -> str:
        return "gemelnet"


class PensyanetProvider(FundReportProvider):
    exchange = Exchange.PENSION
    source = "Pensyanet"
    fund_route = "pensyanet_fund"
    list_route = "pensyanet_list"
    row_tag = "ROW"
    name_field = "SHM_KRN"

    @property
    def name(self) -> str:
        return "pensyanet"
