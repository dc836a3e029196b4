"""
Route table — every upstream the gateway may call.
Adding an upstream = add one Route entry here (and headers for a new prefix).

Template placeholders: ``{name}`` is percent-encoded on substitution,
``{raw:name}`` is inserted verbatim and only used for values the gateway
computes itself (trading dates).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from functools import partial
from typing import Callable

from pricefeed.core.config import settings
from pricefeed.core.gateway.params import fund_report_body

DAY = 24 * 3600

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass(frozen=True)
class Route:
    api_id:         str
    template:       str
    method:         str = "GET"
    response_format: str = "json"               # "json" | "xml"
    defaults:       dict = field(default_factory=dict)
    derived:        tuple[str, ...] = ()         # gateway-computed params, e.g. "trade_date"
    required:       tuple[str, ...] = ()         # params the template does not name, e.g. POST body fields
    body:           Callable[[dict, date], dict] | None = None
    cache_ttl:      int | None = None            # seconds; None = settings default
    empty_result_path: tuple[str, ...] | None = None   # JSON path of a list that must not be empty

    @property
    def ttl(self) -> int:
        return self.cache_ttl if self.cache_ttl is not None else settings.edge_cache_ttl_seconds


GLOBES_WS = "https://www.globes.co.il/data/webservices/financial.asmx"
TASE_DATAWISE = "https://datawise.tase.co.il/v1"
GEMELNET_XML = "https://gemelnet.cma.gov.il/tsuot/ui/tsuotHodXML.aspx"
PENSYANET_EXPORT = "https://pensyanet.cma.gov.il/Parameters/ExportToXML"

ROUTES: dict[str, Route] = {r.api_id: r for r in [
    Route(
        api_id="yahoo_hist",
        template=(
            "https://query1.finance.yahoo.com/v8/finance/chart/{ticker}"
            "?interval=1d&range={range}&events=div%7Csplit&includeAdjustedClose=true"
        ),
        defaults={"range": "5y"},
    ),
    Route(
        api_id="globes_data",
        template=GLOBES_WS + "/getInstrument?exchange={exchange}&symbol={ticker}",
        response_format="xml",
    ),
    Route(
        api_id="globes_list",
        template=GLOBES_WS + "/listByType?exchange={exchange}&type={type}",
        response_format="xml",
        cache_ttl=DAY,
    ),
    Route(
        api_id="tase_list_stocks",
        template=TASE_DATAWISE + "/basic-securities/trade-securities-list/{raw:year}/{raw:month}/{raw:day}",
        derived=("trade_date",),
        cache_ttl=DAY,
        empty_result_path=("tradeSecuritiesList", "result"),
    ),
    Route(
        api_id="tase_list_funds",
        template=TASE_DATAWISE + "/fund/fund-list?listingStatusId=1",
        cache_ttl=DAY,
    ),
    Route(
        api_id="gemelnet_fund",
        template=(
            GEMELNET_XML + "?miTkfDivuach={startYear}{startMonth}&adTkfDivuach={endYear}{endMonth}"
            "&kupot={fundId}&Dochot=1&sug=3"
        ),
        response_format="xml",
        cache_ttl=2 * DAY,
    ),
    Route(
        api_id="gemelnet_list",
        template=GEMELNET_XML + "?miTkfDivuach={startYear}{startMonth}&adTkfDivuach={endYear}{endMonth}&Dochot=1&sug=4",
        response_format="xml",
        cache_ttl=7 * DAY,
    ),
    Route(
        api_id="pensyanet_fund",
        template=PENSYANET_EXPORT,
        method="POST",
        response_format="xml",
        body=partial(fund_report_body, clamp_end=False),
        required=("fundId",),
        cache_ttl=2 * DAY,
    ),
    Route(
        api_id="pensyanet_list",
        template=PENSYANET_EXPORT,
        method="POST",
        response_format="xml",
        body=partial(fund_report_body, clamp_end=True),
        cache_ttl=7 * DAY,
    ),
    Route(
        api_id="cbs_price_index",
        template="https://api.cbs.gov.il/index/data/price?id={id}&format=json&download=false&page={page}",
        defaults={"page": "1"},
        cache_ttl=DAY,
    ),
]}


def route_headers(api_id: str) -> dict[str, str]:
    """Outbound headers chosen by api_id prefix."""
    if api_id.startswith("yahoo"):
        return {"User-Agent": BROWSER_UA}
    if api_id.startswith("globes"):
        return {"Referer": "https://www.globes.co.il/", "User-Agent": BROWSER_UA}
    if api_id.startswith("tase"):
        headers = {"Referer": "https://www.tase.co.il/", "Accept-Language": "en-US"}
        if settings.tase_api_key:
            headers["apikey"] = settings.tase_api_key
        return headers
    if api_id.startswith("gemelnet"):
        return {"Referer": "https://gemelnet.cma.gov.il/"}
    if api_id.startswith("pensyanet"):
        return {"Referer": "https://pensyanet.cma.gov.il/", "Content-Type": "application/json"}
    if api_id.startswith("cbs"):
        return {"Referer": "https://www.cbs.gov.il/"}
    return {}
