"""
tests/test_pipelines/test_signals.py — Tests for price-change signals.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from agriprice_shared.models import PriceSignal
from agriprice_engine.pipelines.signals import (
    PriceSignalJob,
    filter_signals,
    percent_change,
    series_frame,
    signal_status,
    window_prices,
)

AS_OF = date(2024, 12, 31)


def _day(days_ago: int) -> date:
    return AS_OF - timedelta(days=days_ago)


def _az_price(base: dict, days_ago: int, price: float) -> dict:
    return {
        **base,
        "price_date": _day(days_ago).isoformat(),
        "price_min": price,
        "price_avg": price,
        "price_max": price,
    }


def _frame(points: list[tuple[int, float]]):
    key = {
        "canonical_product_id": "prod-apple",
        "canonical_variety_id": None,
        "canonical_country_id": "country-az",
        "canonical_market_id": "market-baku",
        "market_type_code": "WHOLESALE",
        "source": "AZ",
    }
    return series_frame(
        [{**key, "period_date": _day(days_ago), "price": price} for days_ago, price in points]
    )


def _signal(**overrides) -> PriceSignal:
    data = {
        "canonical_product_id": "prod-apple",
        "canonical_country_id": "country-az",
        "canonical_market_id": "market-baku",
        "source": "AZ",
        "as_of": AS_OF,
        "current_price": 1.0,
        "current_price_date": AS_OF,
    }
    data.update(overrides)
    return PriceSignal(**data)


@pytest.fixture
def priced(engine, catalog, az_rows):
    """AZ apple prices at 0, 11, 35, 91 and 365 days before AS_OF; product and market linked."""
    base = az_rows[0]
    engine.ingest(
        [
            _az_price(base, 0, 11.0),
            _az_price(base, 11, 10.0),
            _az_price(base, 35, 10.0),
            _az_price(base, 91, 11.0),
            _az_price(base, 365, 12.0),
        ]
    )
    engine.link_entity("product", "AZ:product:12", "prod-apple")
    engine.link_entity("market", "AZ:market:4", "market-baku")
    return engine


class TestStatus:
    @pytest.mark.parametrize(
        "change, expected",
        [
            (None, "STABLE"),
            (0.0, "STABLE"),
            (2.0, "STABLE"),
            (-2.0, "STABLE"),
            (2.01, "INCREASED"),
            (-2.01, "DECREASED"),
            (35.0, "INCREASED"),
        ],
    )
    def test_two_percent_threshold(self, change, expected):
        assert signal_status(change) == expected

    def test_percent_change(self):
        assert percent_change(11.0, 10.0) == pytest.approx(10.0)
        assert percent_change(9.0, 12.0) == pytest.approx(-25.0)
        assert percent_change(5.0, None) is None
        assert percent_change(5.0, 0.0) is None


class TestWindows:
    @pytest.mark.parametrize(
        "window, inside, outside",
        [
            ("month", (25, 45), (24, 46)),
            ("three_month", (80, 100), (79, 101)),
            ("six_month", (170, 190), (169, 191)),
            ("year", (350, 380), (349, 381)),
        ],
    )
    def test_window_edges_are_inclusive(self, window, inside, outside):
        low, high = inside
        [row] = window_prices(_frame([(0, 5.0), (low, 3.0), (high, 4.0)]), AS_OF).to_dicts()
        assert row[f"{window}_ago_price"] == 3.0

        [row] = window_prices(_frame([(0, 5.0), *[(d, 4.0) for d in outside]]), AS_OF).to_dicts()
        assert row[f"{window}_ago_price"] is None

    def test_current_and_previous(self):
        [row] = window_prices(_frame([(3, 7.0), (0, 8.0), (9, 6.0)]), AS_OF).to_dicts()
        assert row["current_price_date"] == AS_OF
        assert row["current_price"] == 8.0
        assert row["previous_price"] == 7.0

    def test_single_price_has_no_previous(self):
        [row] = window_prices(_frame([(0, 8.0)]), AS_OF).to_dicts()
        assert row["previous_price"] is None

    def test_same_day_prices_are_averaged(self):
        [row] = window_prices(_frame([(0, 8.0), (0, 10.0), (30, 6.0)]), AS_OF).to_dicts()
        assert row["current_price"] == pytest.approx(9.0)
        assert row["previous_price"] == pytest.approx(6.0)


class TestPriceSignalJob:
    def test_signal_per_series(self, priced, repo):
        summary = PriceSignalJob(repo, as_of=AS_OF).run()

        assert summary.series == 1
        assert summary.changed == 1
        [signal] = repo.list_signals()
        assert signal.key == ("prod-apple", None, "country-az", "market-baku", "WHOLESALE", "AZ")
        assert (signal.currency, signal.unit) == ("USD", "kg")
        assert signal.current_price_date == AS_OF
        assert signal.current_price == pytest.approx(11.0 / 1.70)
        assert signal.previous_price == pytest.approx(10.0 / 1.70)

        assert signal.month_ago_price == pytest.approx(10.0 / 1.70)
        assert signal.month_change == pytest.approx(10.0)
        assert signal.month_status == "INCREASED"

        assert signal.three_month_change == pytest.approx(0.0)
        assert signal.three_month_status == "STABLE"

        assert signal.six_month_ago_price is None
        assert signal.six_month_change is None
        assert signal.six_month_status == "STABLE"

        assert signal.year_change == pytest.approx(-8.33)
        assert signal.year_status == "DECREASED"
        assert signal.priority == 1

    def test_unlinked_market_skipped(self, engine, catalog, az_rows, repo):
        engine.ingest(az_rows)
        engine.link_entity("product", "AZ:product:12", "prod-apple")

        summary = PriceSignalJob(repo, as_of=date(2024, 1, 31)).run()

        assert summary.series == 0
        assert summary.skipped_unlinked == 3
        assert repo.list_signals() == []

    def test_observations_outside_lookback_or_after_as_of_ignored(self, priced, repo, az_rows):
        base = az_rows[0]
        priced.ingest([_az_price(base, -3, 50.0), _az_price(base, 401, 50.0)])

        [signal] = PriceSignalJob(repo, as_of=AS_OF).build_signals()

        assert signal.current_price_date == AS_OF
        assert signal.current_price == pytest.approx(11.0 / 1.70)

    def test_unconvertible_observation_skipped(self, priced, repo, make_obs):
        repo.add_observations([make_obs(period_date=_day(1), unit="l")])

        summary = PriceSignalJob(repo, as_of=AS_OF).run()

        assert summary.skipped_unconvertible == 1
        assert repo.list_signals()[0].previous_price == pytest.approx(10.0 / 1.70)

    def test_rerun_replaces_stored_set(self, priced, repo):
        PriceSignalJob(repo, as_of=AS_OF).run()
        PriceSignalJob(repo, as_of=AS_OF + timedelta(days=10)).run()

        [signal] = repo.list_signals()
        assert signal.as_of == AS_OF + timedelta(days=10)
        assert signal.month_ago_price == pytest.approx(10.0 / 1.70)

    def test_failed_replace_keeps_previous_set(self, priced, repo):
        PriceSignalJob(repo, as_of=AS_OF).run()
        previous = repo.list_signals()

        with pytest.raises(ValueError):
            repo.replace_signals([previous[0], previous[0]])

        assert repo.list_signals() == previous

    def test_engine_surface(self, priced):
        summary = priced.update_price_signals(AS_OF)

        assert summary.as_dict()["stable"] == 0
        assert [s.canonical_product_id for s in priced.list_price_signals(status="changed")] == ["prod-apple"]
        assert priced.list_price_signals(status="stable") == []
        assert priced.list_price_signals(source="FPMA") == []


class TestFilterSignals:
    def test_changed_ordered_by_priority(self):
        low = _signal(canonical_market_id="m-low", month_status="INCREASED")
        high = _signal(
            canonical_market_id="m-high",
            month_status="INCREASED",
            three_month_status="DECREASED",
            six_month_status="INCREASED",
        )
        flat = _signal(canonical_market_id="m-flat", year_status="INCREASED")

        assert filter_signals([low, high, flat], status="changed") == [high, low]
        assert filter_signals([low, high, flat], status="stable") == [flat]
        assert filter_signals([low, high, flat], limit=2) == [low, high]

    def test_is_changed_counts_every_horizon(self):
        assert _signal(year_status="DECREASED").is_changed
        assert not _signal().is_changed
