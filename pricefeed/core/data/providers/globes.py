"""Globes provider — instrument snapshot XML through the ``globes_data`` route.

Globes reports the last price with reference closes (last week, month, three
months, three years) rather than a series, so its record carries horizon
changes but no history. TASE instruments are addressed by numeric security id.
"""
import asyncio
from datetime import datetime, timezone
from xml.etree import ElementTree

import aiohttp
import structlog

from pricefeed.core.data.gateway_client import GatewayClient
from pricefeed.core.data.models import HorizonChange, NormalizedRecord
from pricefeed.core.data.providers.base import QuoteProvider
from pricefeed.core.markets.registry import EXCHANGE_REGISTRY, Exchange, InstrumentGroup, parse_exchange

logger = structlog.get_logger()

GLOBES_ROUTE = "globes_data"
GLOBES_NS = "http://financial.globes.co.il/"

# horizon -> element holding the reference close
REFERENCE_CLOSES: dict[str, str] = {
    "1m": "LastMonthClosePrice",
    "3m": "Last3MonthsAgoClosePrice",
    "1y": "LastYearClosePrice",
    "3y": "Last3YearsAgoClosePrice",
}


def _num(text: str | None) -> float | None:
    try:
        return float(text) if text else None
    except ValueError:
        return None


class Instrument:
    """Text accessors over one ``Instrument`` element."""

    def __init__(self, el: ElementTree.Element):
        self._el = el

    def text(self, tag: str) -> str | None:
        child = self._el.find(f"{{{GLOBES_NS}}}{tag}")
        if child is None:
            child = self._el.find(tag)
        value = (child.text or "").strip() if child is not None else ""
        return value or None

    def number(self, tag: str) -> float | None:
        return _num(self.text(tag))


def find_instrument(xml_text: str) -> Instrument | None:
    root = ElementTree.fromstring(xml_text)
    for el in root.iter():
        if el.tag in (f"{{{GLOBES_NS}}}Instrument", "Instrument"):
            return Instrument(el)
    return None


def parse_currency(inst: Instrument) -> str:
    currency = (inst.text("currency") or "ILS").upper()
    if currency == "NIS":
        currency = "ILS"
    # Prices quoted in agorot carry a 0.01 rate
    if currency == "ILS" and inst.number("CurrencyRate") == 0.01:
        return "ILA"
    return currency


def daily_change(inst: Instrument, last: float) -> HorizonChange | None:
    pct = inst.number("percentageChange")
    if pct:
        return HorizonChange(pct / 100)
    change = inst.number("change")
    if change and last - change:
        return HorizonChange(change / (last - change))
    return HorizonChange(0.0) if pct == 0 else None


def parse_volume(inst: Instrument, last: float, currency: str) -> float | None:
    """Average quarterly traded value, in the quote currency."""
    money = inst.number("AverageQuarterTotVolMoney")
    if money is not None:
        # Reported in thousands of the base currency
        volume = money * 1000
        return volume * 100 if currency == "ILA" else volume
    units = inst.number("AverageQuarterTotVol")
    return units * last if units is not None and last else None


def parse_timestamp(text: str | None, now: datetime) -> datetime:
    if not text:
        return now
    try:
        ts = datetime.fromisoformat(text)
    except ValueError:
        return now
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def instrument_record(
    inst: Instrument,
    ticker: str,
    exchange: Exchange,
    now: datetime | None = None,
) -> NormalizedRecord | None:
    """One Globes ``Instrument`` -> NormalizedRecord, or None without a price."""
    now = now or datetime.now(timezone.utc)
    last = inst.number("last")
    if not last:
        logger.info("normalize.no_price", ticker=ticker, exchange=exchange.value, source="globes")
        return None

    try:
        resolved = parse_exchange(inst.text("exchange") or exchange.value)
    except ValueError:
        resolved = exchange

    changes: dict[str, HorizonChange] = {}
    one_day = daily_change(inst, last)
    if one_day is not None:
        changes["1d"] = one_day
    ytd = inst.number("ChangeFromLastYear")
    if ytd is not None:
        changes["ytd"] = HorizonChange(ytd / 100)
    for horizon, tag in REFERENCE_CLOSES.items():
        prev = inst.number(tag)
        if prev:
            changes[horizon] = HorizonChange((last - prev) / prev)

    # Indices are known by their official index number
    if (inst.text("type") or "").lower() == "index" and inst.text("Index_Number"):
        ticker = inst.text("Index_Number")

    currency = parse_currency(inst)
    return NormalizedRecord(
        ticker=ticker,
        price=last,
        exchange=resolved,
        timestamp=parse_timestamp(inst.text("timestamp"), now),
        open_price=inst.number("openPrice") or None,
        name=inst.text("name_en") or inst.text("nameEn") or inst.text("name_he"),
        currency=currency,
        changes=changes,
        volume=parse_volume(inst, last, currency),
        source="Globes",
    )


class GlobesProvider(QuoteProvider):

    def __init__(self, client: GatewayClient | None = None):
        self._client = client or GatewayClient()

    @property
    def name(self) -> str:
        return "globes"

    def supports(self, exchange: Exchange) -> bool:
        # Currencies are only reachable through a separate instrument-id lookup
        config = EXCHANGE_REGISTRY.get(exchange)
        return bool(config and config.yahoo_listed) and exchange != Exchange.FOREX

    def identifier(self, ticker: str, exchange: Exchange) -> str | None:
        ticker = ticker.strip().upper()
        if exchange == Exchange.TASE and not ticker.isdigit():
            return None
        return ticker or None

    async def fetch_quote(
        self,
        ticker: str,
        exchange: Exchange,
        group: InstrumentGroup | None = None,
        range: str = "5y",
    ) -> NormalizedRecord | None:
        identifier = self.identifier(ticker, exchange)
        if identifier is None:
            logger.debug("provider.no_candidates", provider=self.name, ticker=ticker, exchange=exchange.value)
            return None
        params = {"exchange": exchange.value.lower(), "ticker": identifier}
        try:
            text = await self._client.get_text(GLOBES_ROUTE, params)
            inst = find_instrument(text)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("provider.request_failed", provider=self.name, ticker=identifier, error=str(e))
            return None
        except ElementTree.ParseError as e:
            logger.warning("provider.parse_failed", provider=self.name, ticker=identifier, error=str(e))
            return None
        if inst is None:
            logger.info("provider.no_result", provider=self.name, ticker=identifier)
            return None

        record = instrument_record(inst, ticker.strip(), exchange)
        if record is not None:
            logger.info("provider.ok", provider=self.name, ticker=identifier)
        return record
