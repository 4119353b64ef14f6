"""
comparison.py — Cross-source price comparison for one canonical product.

Each selection (country, source) becomes one Series built from that
source's observations in that country only:
- AZ: the stored national aggregates, when they were computed for the
  selected country and every observation behind them is AZ data
- otherwise (and for EU / FAO / FPMA): period statistics computed on the
  fly from the selected source's observations in the selected country

Every point is converted on read into the requested currency/unit. A
selection without data is reported as unavailable rather than as an
error; a point that cannot be converted keeps its native values and marks
the series with conversion_warning.

Usage:
    from agriprice_engine.comparison import ComparisonService, Selection

    service = ComparisonService(repo, rates, stored_country_code="AZ")
    result = service.compare(
        product_id,
        [Selection(country_code="AZ", source="AZ"), Selection(country_code="DE", source="EU")],
        period_type="ANNUAL",
        currency="USD",
        unit="kg",
    )
"""

from __future__ import annotations

from datetime import date
from typing import Literal

import structlog
from pydantic import BaseModel, Field, field_validator

from agriprice_shared.constants import (
    DATA_UNAVAILABLE_MESSAGE,
    EntityKind,
    PeriodType,
    SourceKind,
)
from agriprice_shared.models import AggregateRecord, RateTable
from agriprice_engine.identity import IdentityStore
from agriprice_engine.loaders.base import Repository
from agriprice_engine.pipelines.aggregates import PeriodAggregator
from agriprice_engine.transforms.conversion import DEFAULT_RATES, convert

log = structlog.get_logger(__name__)


class Selection(BaseModel):
    country_code: str
    source: SourceKind

    @field_validator("country_code")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.strip().upper()


class SeriesPoint(BaseModel):
    market_type: str
    year: int
    period: int | None
    start_date: date
    end_date: date
    avg_price: float
    min_price: float
    max_price: float
    sample_count: int
    converted: bool = True


class Series(BaseModel):
    country_code: str
    source: SourceKind
    status: Literal["ok", "unavailable"] = "ok"
    message: str | None = None
    conversion_warning: bool = False
    currency: str
    unit: str
    points: list[SeriesPoint] = Field(default_factory=list)


class Comparison(BaseModel):
    product_id: str
    period_type: PeriodType
    market_type: str | None
    currency: str
    unit: str
    series: list[Series]


class ComparisonService:
    """
    Args:
        repo:                Repository holding observations and aggregates.
        rates:               Rate table for on-read conversion.
        stored_country_code: Country scope the stored aggregates were
                             computed under; None = all countries.
    """

    def __init__(
        self,
        repo: Repository,
        rates: RateTable | None = None,
        *,
        stored_country_code: str | None = None,
    ) -> None:
        self._repo = repo
        self._rates = rates or DEFAULT_RATES
        self._stored_country_code = stored_country_code.upper() if stored_country_code else None

    def _stored_aggregates_apply(
        self, aggregator: PeriodAggregator, product_id: str, selection: Selection
    ) -> bool:
        if selection.source != "AZ" or self._stored_country_code != selection.country_code:
            return False
        product_ids, variety_ids = aggregator.linked_sources(product_id)
        observations = self._repo.list_observations(
            product_ids=product_ids, variety_ids=variety_ids
        )
        return all(obs.source == selection.source for obs in observations)

    def _records(
        self,
        product_id: str,
        selection: Selection,
        period_type: PeriodType,
        market_type: str | None,
        year_from: int | None,
        year_to: int | None,
    ) -> list[AggregateRecord]:
        aggregator = PeriodAggregator(
            self._repo, country_code=selection.country_code, rates=self._rates
        )
        if self._stored_aggregates_apply(aggregator, product_id, selection):
            return self._repo.list_aggregates(
                product_id=product_id,
                period_type=period_type,
                market_type=market_type,
                year_from=year_from,
                year_to=year_to,
            )

        records = aggregator.build_records(product_id, source=selection.source) or []
        return [
            r
            for r in records
            if r.period_type == period_type
            and (market_type is None or r.market_type_code == market_type)
            and (year_from is None or r.year >= year_from)
            and (year_to is None or r.year <= year_to)
        ]

    def _series(
        self,
        records: list[AggregateRecord],
        selection: Selection,
        currency: str,
        unit: str,
    ) -> Series:
        series = Series(
            country_code=selection.country_code,
            source=selection.source,
            currency=currency,
            unit=unit,
        )
        if not records:
            series.status = "unavailable"
            series.message = DATA_UNAVAILABLE_MESSAGE
            return series

        for record in records:
            results = [
                convert(v, record.currency, currency, record.unit, unit, self._rates)
                for v in (record.avg_price, record.min_price, record.max_price)
            ]
            converted = all(r.converted for r in results)
            if not converted:
                series.conversion_warning = True
            avg, low, high = (r.value for r in results)
            series.points.append(
                SeriesPoint(
                    market_type=record.market_type_code,
                    year=record.year,
                    period=record.period,
                    start_date=record.start_date,
                    end_date=record.end_date,
                    avg_price=avg,
                    min_price=low,
                    max_price=high,
                    sample_count=record.sample_count,
                    converted=converted,
                )
            )
        return series

    def compare(
        self,
        product_id: str,
        selections: list[Selection],
        *,
        period_type: PeriodType = "ANNUAL",
        market_type: str | None = None,
        year_from: int | None = None,
        year_to: int | None = None,
        currency: str = "USD",
        unit: str = "kg",
    ) -> Comparison:
        """
        Build one converted series per selection.

        Raises:
            NotFound: Unknown product id.
        """
        IdentityStore(self._repo, EntityKind.PRODUCT).get(product_id)
        series: list[Series] = []
        for selection in selections:
            records = self._records(
                product_id, selection, period_type, market_type, year_from, year_to
            )
            series.append(self._series(records, selection, currency, unit))

        log.info(
            "comparison_built",
            product_id=product_id,
            selections=len(selections),
            unavailable=sum(1 for s in series if s.status == "unavailable"),
        )
        return Comparison(
            product_id=product_id,
            period_type=period_type,
            market_type=market_type,
            currency=currency,
            unit=unit,
            series=series,
        )
