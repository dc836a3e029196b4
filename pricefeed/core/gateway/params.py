"""Parameter rules for gateway routes: allow-list, derived trading date, POST bodies."""
import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from pricefeed.core.dates import shift_back
from pricefeed.core.gateway.errors import InvalidParameterError, MissingParameterError

# TASE publishes in Israel time; "today" for trading-date purposes is Israeli.
IL = ZoneInfo("Asia/Jerusalem")

# Latin and Hebrew letters, digits and a little punctuation. Nothing else ever
# reaches a URL template.
ALLOWED_VALUE = re.compile(r"^[A-Za-zא-ת0-9 .,_^=\-]*$")

ROLLBACK_STEP_DAYS = 2
LIST_END_LAG_MONTHS = 2


def today_il() -> date:
    return datetime.now(IL).date()


def validate_params(params: dict[str, str]) -> None:
    for name, value in params.items():
        if not ALLOWED_VALUE.match(str(value)):
            raise InvalidParameterError(f"Invalid characters in parameter '{name}'", param=name)


def last_trading_date(today: date, rollback_days: int = 0) -> date:
    """Yesterday, or Friday when today is Sunday, minus any rollback."""
    back = 2 if today.weekday() == 6 else 1
    return today - timedelta(days=back + rollback_days)


def trade_date_params(d: date) -> dict[str, str]:
    return {"year": f"{d.year:04d}", "month": f"{d.month:02d}", "day": f"{d.day:02d}"}


def _period(params: dict[str, str], prefix: str) -> date:
    try:
        year, month = params[f"{prefix}Year"], params[f"{prefix}Month"]
    except KeyError as e:
        raise MissingParameterError(f"Missing required parameter '{e.args[0]}'", param=e.args[0])
    try:
        return date(int(year), int(month), 1)
    except ValueError:
        raise InvalidParameterError(f"Invalid {prefix} period {year}-{month}", param=f"{prefix}Month")


def fund_report_body(params: dict[str, str], today: date, clamp_end: bool = False) -> dict:
    """
    JSON body for the monthly fund-report routes.

    List queries cover every fund, and the regulator publishes them with a lag,
    so their end period is capped at two calendar months before today.
    """
    start = _period(params, "start")
    end = _period(params, "end")
    if clamp_end:
        latest = shift_back(today, months=LIST_END_LAG_MONTHS).replace(day=1)
        end = min(end, latest)
    body = {
        "reportPeriodFrom": {"year": start.year, "month": start.month},
        "reportPeriodTo": {"year": end.year, "month": end.month},
    }
    if params.get("fundId"):
        body["fundIds"] = [params["fundId"]]
    return body
