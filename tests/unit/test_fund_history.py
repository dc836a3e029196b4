"""Unit tests for monthly fund / index series."""
from datetime import datetime, timezone

import pytest

from pricefeed.core.data.fund_history import (
    month_end,
    months_back,
    parse_report_month,
    record_from_levels,
    record_from_returns,
)
from pricefeed.core.markets.registry import Exchange

UTC = timezone.utc


def monthly(start_year: int, start_month: int, values: list[float]) -> list[tuple[datetime, float]]:
    out = []
    for i, v in enumerate(values):
        year, month = months_back(month_end(start_year, start_month), -i)
        out.append((month_end(year, month), v))
    return out


class TestReportMonth:

    def test_month_end(self):
        assert parse_report_month("202402") == datetime(2024, 2, 29, tzinfo=UTC)
        assert parse_report_month(" 202312 ") == datetime(2023, 12, 31, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", "2024", "202413", "2024-1", "abcdef"])
    def test_malformed(self, value):
        assert parse_report_month(value) is None

    def test_months_back_crosses_years(self):
        assert months_back(datetime(2024, 2, 29, tzinfo=UTC), 3) == (2023, 11)
        assert months_back(datetime(2024, 2, 29, tzinfo=UTC), 0) == (2024, 2)


# ── Compounded returns ───────────────────────────────────────────────────


class TestRecordFromReturns:

    def test_compounds_from_100(self):
        returns = monthly(2024, 1, [1.0, 2.0, -1.0])
        record = record_from_returns(returns, "578", Exchange.GEMEL, "Gemelnet", today=datetime(2024, 5, 1, tzinfo=UTC))

        assert record.price == pytest.approx(100 * 1.01 * 1.02 * 0.99)
        assert record.timestamp == datetime(2024, 3, 31, tzinfo=UTC)
        assert [round(p.price, 4) for p in record.historical] == [101.0, 103.02, 101.9898]
        assert record.source == "Gemelnet"
        assert record.currency == "ILS"
        assert record.exchange == Exchange.GEMEL

    def test_month_horizons(self):
        returns = monthly(2023, 1, [1.0] * 15)     # Jan 2023 .. Mar 2024
        record = record_from_returns(returns, "1", Exchange.GEMEL, "Gemelnet", today=datetime(2024, 4, 1, tzinfo=UTC))

        assert record.change("1m").pct == pytest.approx(0.01)
        assert record.change("1m").date == datetime(2024, 2, 29, tzinfo=UTC)
        assert record.change("3m").pct == pytest.approx(1.01 ** 3 - 1)
        assert record.change("1y").pct == pytest.approx(1.01 ** 12 - 1)
        assert record.change("3y") is None

    def test_ytd_from_last_december(self):
        returns = monthly(2023, 11, [5.0, 2.0, 1.0, 1.0])
        record = record_from_returns(returns, "1", Exchange.GEMEL, "Gemelnet", today=datetime(2024, 3, 1, tzinfo=UTC))
        assert record.change("ytd").pct == pytest.approx(1.01 ** 2 - 1)
        assert record.change("ytd").date == datetime(2023, 12, 31, tzinfo=UTC)

    def test_ytd_without_december_uses_level_before_first_report(self):
        returns = monthly(2024, 2, [2.0, 3.0])
        record = record_from_returns(returns, "1", Exchange.PENSION, "Pensyanet", today=datetime(2024, 4, 1, tzinfo=UTC))
        assert record.change("ytd").pct == pytest.approx(1.02 * 1.03 - 1)

    def test_ytd_is_zero_before_first_report_of_the_year(self):
        returns = monthly(2023, 10, [1.0, 1.0])
        record = record_from_returns(returns, "1", Exchange.GEMEL, "Gemelnet", today=datetime(2024, 1, 15, tzinfo=UTC))
        assert record.change("ytd").pct == 0.0
        assert record.change("ytd").date == datetime(2024, 1, 1, tzinfo=UTC)

    def test_max_from_before_first_month(self):
        returns = monthly(2020, 1, [10.0, 10.0])
        record = record_from_returns(returns, "1", Exchange.GEMEL, "Gemelnet")
        assert record.change("max").pct == pytest.approx(0.21)
        assert record.change("max").date == datetime(2020, 1, 31, tzinfo=UTC)

    def test_unsorted_input(self):
        returns = list(reversed(monthly(2024, 1, [1.0, 2.0])))
        record = record_from_returns(returns, "1", Exchange.GEMEL, "Gemelnet")
        assert record.historical[0].date < record.historical[-1].date

    def test_total_loss_month_does_not_divide_by_zero(self):
        record = record_from_returns(monthly(2024, 1, [-100.0, 5.0]), "1", Exchange.GEMEL, "Gemelnet")
        assert record.price == 0.0
        assert record.change("max") is None

    def test_empty(self):
        assert record_from_returns([], "1", Exchange.GEMEL, "Gemelnet") is None


# ── Index levels ─────────────────────────────────────────────────────────


class TestRecordFromLevels:

    def test_levels_are_prices(self):
        levels = monthly(2023, 11, [100.0, 102.0, 103.0, 104.0])
        record = record_from_levels(levels, "120010", Exchange.CBS, "CBS", name="Israel Consumer Price Index")

        assert record.price == 104.0
        assert record.name == "Israel Consumer Price Index"
        assert record.change("1m").pct == pytest.approx(104 / 103 - 1)
        assert record.change("ytd").pct == pytest.approx(104 / 102 - 1)
        assert record.change("max").pct == pytest.approx(0.04)
        assert record.change("max").date == datetime(2023, 11, 30, tzinfo=UTC)

    def test_no_ytd_without_december(self):
        record = record_from_levels(monthly(2024, 1, [100.0, 101.0]), "1", Exchange.CBS, "CBS")
        assert record.change("ytd") is None
