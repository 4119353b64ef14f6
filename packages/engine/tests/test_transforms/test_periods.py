"""
tests/test_transforms/test_periods.py — Tests for weekly / monthly / annual statistics.
"""

from __future__ import annotations

from datetime import date

import pytest

from agriprice_shared.time_utils import iso_week_key
from agriprice_engine.transforms.periods import (
    build_aggregate_records,
    observations_frame,
    period_stats,
)


def _row(d: date, avg: float, low: float | None = None, high: float | None = None, **extra):
    row = {
        "market_type": "WHOLESALE",
        "period_date": d,
        "value_low": avg if low is None else low,
        "value_avg": avg,
        "value_high": avg if high is None else high,
        "currency": "AZN",
        "unit": "kg",
    }
    row.update(extra)
    return row


@pytest.fixture
def wholesale_df():
    return observations_frame(
        [
            _row(date(2024, 1, 2), 10.0, 9.0, 13.0),
            _row(date(2024, 1, 4), 12.0, 11.0, 14.0),
            _row(date(2024, 1, 8), 11.0, 10.0, 12.0),
        ]
    )


class TestWeekly:
    def test_two_weeks(self, wholesale_df):
        records = [r for r in build_aggregate_records("P", wholesale_df) if r.period_type == "WEEKLY"]
        assert len(records) == 2

        first, second = records
        assert (first.year, first.period) == (2024, 1)
        assert first.avg_price == pytest.approx(11.0)
        assert (first.min_price, first.max_price, first.sample_count) == (9.0, 14.0, 2)
        assert (first.start_date, first.end_date) == (date(2024, 1, 1), date(2024, 1, 7))

        assert (second.year, second.period) == (2024, 2)
        assert second.avg_price == pytest.approx(11.0)
        assert (second.min_price, second.max_price, second.sample_count) == (10.0, 12.0, 1)

    def test_iso_week_year_boundary(self):
        df = observations_frame(
            [
                _row(date(2024, 12, 30), 5.0),
                _row(date(2024, 12, 31), 7.0),
                _row(date(2025, 1, 1), 9.0),
            ]
        )
        stats = period_stats(df, "WEEKLY")
        assert stats.height == 1
        row = stats.row(0, named=True)
        assert (row["year"], row["period"]) == (2025, 1)
        assert row["sample_count"] == 3

        assert iso_week_key(date(2024, 12, 31)) == (2025, 1)
        [record] = [r for r in build_aggregate_records("P", df) if r.period_type == "WEEKLY"]
        assert record.year == 2025
        assert (record.start_date, record.end_date) == (date(2024, 12, 30), date(2025, 1, 5))

    def test_groups_split_by_market_type(self):
        df = observations_frame(
            [
                _row(date(2024, 3, 4), 2.0),
                _row(date(2024, 3, 5), 3.0, market_type="RETAIL"),
            ]
        )
        stats = period_stats(df, "WEEKLY")
        assert sorted(stats["market_type"].to_list()) == ["RETAIL", "WHOLESALE"]


class TestMonthlyAndAnnual:
    def test_monthly_bounds(self, wholesale_df):
        [record] = [r for r in build_aggregate_records("P", wholesale_df) if r.period_type == "MONTHLY"]
        assert (record.year, record.period) == (2024, 1)
        assert (record.start_date, record.end_date) == (date(2024, 1, 1), date(2024, 1, 31))
        assert record.sample_count == 3

    def test_annual_uses_observed_span(self, wholesale_df):
        [record] = [r for r in build_aggregate_records("P", wholesale_df) if r.period_type == "ANNUAL"]
        assert record.period is None
        assert record.year == 2024
        assert (record.start_date, record.end_date) == (date(2024, 1, 2), date(2024, 1, 8))
        assert record.avg_price == pytest.approx(11.0)

    def test_leap_february(self):
        df = observations_frame([_row(date(2024, 2, 10), 1.0)])
        [record] = [r for r in build_aggregate_records("P", df) if r.period_type == "MONTHLY"]
        assert record.end_date == date(2024, 2, 29)


class TestInvariants:
    def test_min_avg_max_and_samples(self, wholesale_df):
        for record in build_aggregate_records("P", wholesale_df):
            assert record.min_price <= record.avg_price <= record.max_price
            assert record.sample_count >= 1
            assert record.start_date <= record.end_date

    def test_empty_frame(self):
        assert build_aggregate_records("P", observations_frame([])) == []

    def test_extra_keys_ignored(self):
        df = observations_frame([_row(date(2024, 1, 2), 1.0, source="AZ")])
        assert "source" not in df.columns

    def test_native_currency_kept(self, wholesale_df):
        records = build_aggregate_records("P", wholesale_df)
        assert {(r.currency, r.unit) for r in records} == {("AZN", "kg")}
        assert len(records) == 4
