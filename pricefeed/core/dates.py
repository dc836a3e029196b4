"""Calendar helpers shared by the normalizer and the gateway."""
import calendar
from datetime import date, datetime
from typing import TypeVar

D = TypeVar("D", date, datetime)


def shift_back(d: D, months: int = 0, years: int = 0) -> D:
    """Step back on calendar fields; the day is clamped to the target month's length."""
    total = d.year * 12 + (d.month - 1) - months - years * 12
    year, month0 = divmod(total, 12)
    month = month0 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return d.replace(year=year, month=month, day=day)
