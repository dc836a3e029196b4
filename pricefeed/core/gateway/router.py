"""EdgeRouter — (apiId, params) -> concrete upstream request, or a rejection."""
import re
from dataclasses import dataclass, field
from datetime import date
from urllib.parse import quote

import structlog

from pricefeed.core.gateway.errors import MissingParameterError, UnknownRouteError
from pricefeed.core.gateway.params import last_trading_date, today_il, trade_date_params, validate_params
from pricefeed.core.gateway.routes import ROUTES, Route, route_headers

logger = structlog.get_logger()

_PLACEHOLDER = re.compile(r"\{(raw:)?([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class UpstreamRequest:
    route: Route
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: dict | None = None
    params: dict[str, str] = field(default_factory=dict)


def substitute(template: str, values: dict[str, str]) -> str:
    def repl(m: re.Match) -> str:
        raw, name = m.group(1), m.group(2)
        if name not in values:
            return m.group(0)
        value = str(values[name])
        return value if raw else quote(value, safe="")
    return _PLACEHOLDER.sub(repl, template)


class EdgeRouter:

    def __init__(self, routes: dict[str, Route] | None = None):
        self._routes = ROUTES if routes is None else routes

    def known(self, api_id: str) -> bool:
        return api_id in self._routes

    def route(
        self,
        api_id: str,
        params: dict[str, str],
        today: date | None = None,
        rollback_days: int = 0,
    ) -> UpstreamRequest:
        route = self._routes.get(api_id)
        if route is None:
            raise UnknownRouteError(f"Unknown apiId '{api_id}'", api_id=api_id)

        validate_params(params)

        today = today or today_il()
        values = {**route.defaults, **params}
        if "trade_date" in route.derived:
            values.update(trade_date_params(last_trading_date(today, rollback_days)))

        url = substitute(route.template, values)
        missing = [m.group(2) for m in _PLACEHOLDER.finditer(url)]
        missing += [name for name in route.required if not values.get(name)]
        if missing:
            raise MissingParameterError(f"Missing required parameter(s) for '{api_id}': {missing}", missing=missing)

        body = route.body(values, today) if route.body else None
        logger.debug("gateway.routed", api_id=api_id, method=route.method, url=url)
        return UpstreamRequest(
            route=route,
            method=route.method,
            url=url,
            headers=route_headers(api_id),
            body=body,
            params=values,
        )
