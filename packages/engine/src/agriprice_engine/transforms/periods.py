"""
transforms/periods.py — Weekly / monthly / annual statistics over observations.

Works entirely on polars DataFrames. The input frame has one row per raw
observation, already tagged with its canonical market-type code and
expressed in one currency/unit per market type:

    market_type | period_date | value_low | value_avg | value_high | currency | unit

Periods:
- WEEKLY:  ISO week, keyed by (ISO week-year, week); Monday–Sunday bounds
- MONTHLY: (year, month); first/last day of the month
- ANNUAL:  year; bounds are the first and last observation dates in it

Statistics per group:
- avg_price    = unweighted mean of value_avg (mean of per-observation means)
- min_price    = min(value_low)
- max_price    = max(value_high)
- sample_count = number of observations

Usage:
    from agriprice_engine.transforms.periods import observations_frame, build_aggregate_records

    df = observations_frame(rows)
    records = build_aggregate_records("prod-apple", df)
"""

from __future__ import annotations

from datetime import date
from typing import Any

import polars as pl
import structlog

from agriprice_shared.constants import PERIOD_TYPES, PeriodType
from agriprice_shared.models import AggregateRecord
from agriprice_shared.time_utils import iso_week_bounds, month_bounds

log = structlog.get_logger(__name__)

OBSERVATION_SCHEMA: dict[str, Any] = {
    "market_type": pl.String,
    "period_date": pl.Date,
    "value_low": pl.Float64,
    "value_avg": pl.Float64,
    "value_high": pl.Float64,
    "currency": pl.String,
    "unit": pl.String,
}

_GROUP_COLS = ["market_type", "currency", "unit", "year", "period"]


def observations_frame(rows: list[dict[str, Any]]) -> pl.DataFrame:
    """Build the aggregation input frame; extra keys in rows are ignored."""
    if not rows:
        return pl.DataFrame(schema=OBSERVATION_SCHEMA)
    return pl.DataFrame(
        [{col: row[col] for col in OBSERVATION_SCHEMA} for row in rows],
        schema=OBSERVATION_SCHEMA,
    )


def _with_period_keys(df: pl.DataFrame, period_type: PeriodType) -> pl.DataFrame:
    d = pl.col("period_date")
    if period_type == "WEEKLY":
        return df.with_columns(
            d.dt.iso_year().cast(pl.Int32).alias("year"),
            d.dt.week().cast(pl.Int32).alias("period"),
        )
    if period_type == "MONTHLY":
        return df.with_columns(
            d.dt.year().cast(pl.Int32).alias("year"),
            d.dt.month().cast(pl.Int32).alias("period"),
        )
    if period_type == "ANNUAL":
        return df.with_columns(
            d.dt.year().cast(pl.Int32).alias("year"),
            pl.lit(None, dtype=pl.Int32).alias("period"),
        )
    raise ValueError(f"Unknown period type: {period_type}")


def period_stats(df: pl.DataFrame, period_type: PeriodType) -> pl.DataFrame:
    """
    Group observations into periods of one type and compute statistics.

    Args:
        df:          Frame with OBSERVATION_SCHEMA columns.
        period_type: "WEEKLY" | "MONTHLY" | "ANNUAL".

    Returns:
        One row per (market_type, currency, unit, year, period) with
        avg_price, min_price, max_price, sample_count, first_date, last_date,
        sorted by the group keys.
    """
    keyed = _with_period_keys(df, period_type)
    stats = keyed.group_by(_GROUP_COLS).agg(
        pl.col("value_avg").mean().alias("avg_price"),
        pl.col("value_low").min().alias("min_price"),
        pl.col("value_high").max().alias("max_price"),
        pl.len().alias("sample_count"),
        pl.col("period_date").min().alias("first_date"),
        pl.col("period_date").max().alias("last_date"),
    )
    return stats.sort(_GROUP_COLS, nulls_last=True)


def _period_bounds(period_type: PeriodType, row: dict[str, Any]) -> tuple[date, date]:
    if period_type == "WEEKLY":
        return iso_week_bounds(row["year"], row["period"])
    if period_type == "MONTHLY":
        return month_bounds(row["year"], row["period"])
    return row["first_date"], row["last_date"]


def build_aggregate_records(product_id: str, df: pl.DataFrame) -> list[AggregateRecord]:
    """
    Run the three period passes and return AggregateRecords in a stable order.

    An empty frame yields no records; groups never have zero samples.
    """
    if df.is_empty():
        return []

    records: list[AggregateRecord] = []
    for period_type in PERIOD_TYPES:
        stats = period_stats(df, period_type)  # type: ignore[arg-type]
        for row in stats.iter_rows(named=True):
            start, end = _period_bounds(period_type, row)  # type: ignore[arg-type]
            records.append(
                AggregateRecord(
                    canonical_product_id=product_id,
                    market_type_code=row["market_type"],
                    period_type=period_type,  # type: ignore[arg-type]
                    period=row["period"],
                    year=row["year"],
                    avg_price=row["avg_price"],
                    min_price=row["min_price"],
                    max_price=row["max_price"],
                    sample_count=row["sample_count"],
                    start_date=start,
                    end_date=end,
                    currency=row["currency"],
                    unit=row["unit"],
                )
            )

    log.debug(
        "period_stats_built",
        product_id=product_id,
        observations=len(df),
        records=len(records),
    )
    return records
