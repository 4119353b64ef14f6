"""
tests/test_loaders/test_duckdb_repository.py — DuckDBRepository against :memory:.
"""

from __future__ import annotations

from datetime import date

import duckdb
import pytest

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import (
    AggregateRecord,
    CanonicalCountry,
    CanonicalMarket,
    CanonicalProduct,
    PriceSignal,
    SourceEntity,
    default_rate_table,
)


def _aggregate(period: int | None, avg: float = 2.0, **overrides) -> AggregateRecord:
    data = {
        "canonical_product_id": "prod-apple",
        "market_type_code": "WHOLESALE",
        "period_type": "MONTHLY",
        "period": period,
        "year": 2024,
        "avg_price": avg,
        "min_price": avg - 1,
        "max_price": avg + 1,
        "sample_count": 3,
        "currency": "AZN",
        "unit": "kg",
    }
    if period is not None:
        data["start_date"] = date(2024, period, 1)
        data["end_date"] = date(2024, period, 28)
    data.update(overrides)
    return AggregateRecord(**data)


class TestCanonicalAndSourceRows:
    def test_canonical_round_trip(self, duck_repo):
        apple = CanonicalProduct(id="prod-apple", slug="apple", name_en="Apple", aliases=["Alma"])
        duck_repo.add_canonical(EntityKind.PRODUCT, apple)

        assert duck_repo.get_canonical(EntityKind.PRODUCT, "prod-apple") == apple
        assert duck_repo.get_canonical(EntityKind.PRODUCT, "nope") is None

        duck_repo.delete_canonical(EntityKind.PRODUCT, "prod-apple")
        assert duck_repo.list_canonical(EntityKind.PRODUCT) == []

    def test_market_name_unique_per_country(self, duck_repo):
        duck_repo.add_canonical(EntityKind.COUNTRY, CanonicalCountry(id="c-az", iso2="AZ", name_en="Azerbaijan"))
        market = CanonicalMarket(id="m1", country_id="c-az", name="Baku")
        duck_repo.add_canonical(EntityKind.MARKET, market)

        with pytest.raises(duckdb.ConstraintException):
            duck_repo.add_canonical(
                EntityKind.MARKET, CanonicalMarket(id="m2", country_id="c-az", name="Baku")
            )

    def test_source_entity_upsert_and_filters(self, duck_repo):
        entity = SourceEntity(
            id="AZ:product:12", kind=EntityKind.PRODUCT, source="AZ", code="12", name="Alma"
        )
        duck_repo.save_source_entity(entity)
        duck_repo.save_source_entity(entity.model_copy(update={"canonical_id": "prod-apple"}))

        [stored] = duck_repo.list_source_entities(EntityKind.PRODUCT)
        assert stored.canonical_id == "prod-apple"
        assert duck_repo.list_source_entities(EntityKind.PRODUCT, source="EU") == []
        assert duck_repo.list_source_entities(EntityKind.PRODUCT, canonical_id="prod-apple") == [stored]
        assert duck_repo.get_source_entity(EntityKind.MARKET, "AZ:product:12") is None


class TestObservations:
    def test_dedupe_and_order(self, duck_repo, make_obs):
        later = make_obs(period_date=date(2024, 1, 8))
        earlier = make_obs(period_date=date(2024, 1, 2))

        assert duck_repo.add_observations([later, earlier, earlier]) == 2
        assert duck_repo.add_observations([earlier]) == 0

        rows = duck_repo.list_observations(product_ids=["AZ:product:12"])
        assert [o.period_date for o in rows] == [date(2024, 1, 2), date(2024, 1, 8)]

    def test_filters(self, duck_repo, make_obs):
        duck_repo.add_observations(
            [
                make_obs(source_variety_id="AZ:variety:31"),
                make_obs(source_product_id="AZ:product:99", period_date=date(2024, 2, 1)),
            ]
        )
        assert len(duck_repo.list_observations(variety_ids=["AZ:variety:31"])) == 1
        assert len(duck_repo.list_observations(product_ids=["AZ:product:99"], source="EU")) == 0
        assert duck_repo.list_observations() == []


class TestAggregates:
    def test_replace_is_atomic(self, duck_repo):
        duck_repo.replace_aggregates("prod-apple", [_aggregate(1), _aggregate(2)])
        previous = duck_repo.list_aggregates(product_id="prod-apple")

        with pytest.raises(ValueError):
            duck_repo.replace_aggregates("prod-apple", [_aggregate(3), _aggregate(3)])

        assert duck_repo.list_aggregates(product_id="prod-apple") == previous
        assert duck_repo.count_aggregates("prod-apple") == 2

    def test_replace_overwrites(self, duck_repo):
        duck_repo.replace_aggregates("prod-apple", [_aggregate(1), _aggregate(2)])
        duck_repo.replace_aggregates("prod-apple", [_aggregate(5, avg=4.0)])

        [record] = duck_repo.list_aggregates(product_id="prod-apple")
        assert record.period == 5
        assert record.avg_price == 4.0

    def test_filters(self, duck_repo):
        monthly = _aggregate(1)
        annual = _aggregate(
            None, period_type="ANNUAL", year=2023,
            start_date=date(2023, 1, 1), end_date=date(2023, 12, 1),
        )
        retail = _aggregate(2, market_type_code="RETAIL")
        duck_repo.replace_aggregates("prod-apple", [monthly, annual, retail])

        assert duck_repo.list_aggregates(period_type="ANNUAL") == [annual]
        assert duck_repo.list_aggregates(year_from=2024) == [retail, monthly]
        assert duck_repo.list_aggregates(year_to=2023) == [annual]
        assert duck_repo.list_aggregates(market_type="RETAIL") == [retail]
        assert duck_repo.list_aggregates(market_type="PRODUCER") == []
        assert duck_repo.list_aggregates(product_id="prod-pear") == []

    def test_annual_record_reads_back_with_null_period(self, duck_repo):
        annual = _aggregate(
            None, period_type="ANNUAL", year=2023,
            start_date=date(2023, 3, 4), end_date=date(2023, 11, 20),
        )
        duck_repo.replace_aggregates("prod-apple", [annual])

        [stored] = duck_repo.list_aggregates(product_id="prod-apple")
        assert stored == annual
        assert stored.period is None

    def test_nested_transaction_rolls_back_together(self, duck_repo):
        with pytest.raises(RuntimeError):
            with duck_repo.transaction():
                duck_repo.replace_aggregates("prod-apple", [_aggregate(1)])
                raise RuntimeError("abort")

        assert duck_repo.count_aggregates("prod-apple") == 0


class TestRates:
    def test_empty_until_saved(self, duck_repo):
        assert duck_repo.load_rate_table() is None

        duck_repo.save_rate_table(default_rate_table())
        table = duck_repo.load_rate_table()

        assert table.currencies["AZN"].rate_to_base == 1.70
        assert table.units["100kg"].base_unit == "kg"


class TestSignals:
    def _signal(self, market_id: str, **overrides) -> PriceSignal:
        data = {
            "canonical_product_id": "prod-apple",
            "canonical_country_id": "country-az",
            "canonical_market_id": market_id,
            "market_type_code": "WHOLESALE",
            "source": "AZ",
            "as_of": date(2024, 12, 31),
            "current_price": 6.47,
            "current_price_date": date(2024, 12, 31),
            "month_ago_price": 5.88,
            "month_change": 10.0,
            "month_status": "INCREASED",
        }
        data.update(overrides)
        return PriceSignal(**data)

    def test_replace_and_read_back(self, duck_repo):
        baku = self._signal("market-baku")
        ganja = self._signal("market-ganja", canonical_variety_id="var-golden", source="FPMA")

        assert duck_repo.replace_signals([ganja, baku]) == 2

        assert duck_repo.list_signals() == [baku, ganja]
        assert duck_repo.list_signals(source="FPMA") == [ganja]
        assert duck_repo.list_signals(product_id="prod-pear") == []

    def test_replace_is_atomic(self, duck_repo):
        baku = self._signal("market-baku")
        duck_repo.replace_signals([baku])

        with pytest.raises(ValueError):
            duck_repo.replace_signals([self._signal("market-ganja"), self._signal("market-ganja")])

        assert duck_repo.list_signals() == [baku]
