"""
pipelines/signals.py — Latest-price movement signals per price series.

Orchestrates:
  1. Load the observations of every linked source product / variety of the
     market-level sources (SIGNAL_SOURCES) dated within SIGNAL_LOOKBACK_DAYS
     before the as-of date
  2. Key each observation by series: canonical product, canonical variety,
     canonical country, canonical market, market-type code and source.
     Observations whose product or market is not linked are skipped
  3. Express value_avg in the base currency per base unit; observations
     that cannot be converted are skipped
  4. Per series (polars): one price per day (mean of that day's prices),
     the current and previous price, and the most recent price inside each
     reference window (1M 25-45, 3M 80-100, 6M 170-190, 12M 350-380 days)
  5. Percent change against each reference and its status:
     INCREASED above +2 %, DECREASED below -2 %, STABLE otherwise
  6. Replace the stored signal set in one repository transaction

Usage:
    from agriprice_engine.pipelines.signals import PriceSignalJob

    summary = PriceSignalJob(repo, rates=rates).run()
    print(summary.series, summary.changed)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

import polars as pl
import structlog

from agriprice_shared.config import settings
from agriprice_shared.constants import (
    SIGNAL_LOOKBACK_DAYS,
    SIGNAL_SOURCES,
    SIGNAL_THRESHOLD_PERCENT,
    SIGNAL_WINDOWS,
    EntityKind,
    SignalStatus,
)
from agriprice_shared.models import (
    CanonicalMarket,
    CanonicalVariety,
    PriceSignal,
    RateTable,
    RawObservation,
    SourceEntity,
)
from agriprice_engine.loaders.base import Repository
from agriprice_engine.pipelines.aggregates import MarketTypeResolver
from agriprice_engine.transforms.conversion import DEFAULT_RATES, convert

log = structlog.get_logger(__name__)

SERIES_KEY: list[str] = [
    "canonical_product_id",
    "canonical_variety_id",
    "canonical_country_id",
    "canonical_market_id",
    "market_type_code",
    "source",
]

SERIES_SCHEMA: dict[str, Any] = {
    **{col: pl.String for col in SERIES_KEY},
    "period_date": pl.Date,
    "price": pl.Float64,
}


def percent_change(current: float, reference: float | None) -> float | None:
    if reference is None or reference == 0:
        return None
    return (current - reference) / reference * 100


def signal_status(
    change: float | None, threshold: float = SIGNAL_THRESHOLD_PERCENT
) -> SignalStatus:
    if change is None:
        return "STABLE"
    if change > threshold:
        return "INCREASED"
    if change < -threshold:
        return "DECREASED"
    return "STABLE"


def series_frame(rows: list[dict[str, Any]]) -> pl.DataFrame:
    if not rows:
        return pl.DataFrame(schema=SERIES_SCHEMA)
    return pl.DataFrame(
        [{col: row[col] for col in SERIES_SCHEMA} for row in rows], schema=SERIES_SCHEMA
    )


def window_prices(df: pl.DataFrame, as_of: date) -> pl.DataFrame:
    """
    Collapse a series frame to one row per series.

    Columns: the SERIES_KEY columns, current_price_date, current_price,
    previous_price and one <window>_ago_price column per SIGNAL_WINDOWS
    entry (null when the window holds no price). Windows are inclusive day
    ranges counted back from as_of; the most recent price inside wins.
    """
    daily = (
        df.group_by(SERIES_KEY + ["period_date"])
        .agg(pl.col("price").mean())
        .with_columns(
            (pl.lit(as_of) - pl.col("period_date")).dt.total_days().alias("days_ago")
        )
        .sort("period_date", descending=True)
    )
    windows = [
        pl.col("price")
        .filter(pl.col("days_ago").is_between(low, high))
        .first()
        .alias(f"{name}_ago_price")
        for name, (low, high) in SIGNAL_WINDOWS.items()
    ]
    return daily.group_by(SERIES_KEY, maintain_order=True).agg(
        pl.col("period_date").first().alias("current_price_date"),
        pl.col("price").first().alias("current_price"),
        pl.col("price").slice(1, 1).first().alias("previous_price"),
        *windows,
    )


@dataclass
class SignalSummary:
    """Outcome of PriceSignalJob.run()."""

    as_of: date
    series: int = 0
    changed: int = 0
    skipped_unlinked: int = 0
    skipped_unconvertible: int = 0
    duration_ms: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "as_of": self.as_of.isoformat(),
            "series": self.series,
            "changed": self.changed,
            "stable": self.series - self.changed,
            "skipped_unlinked": self.skipped_unlinked,
            "skipped_unconvertible": self.skipped_unconvertible,
            "duration_ms": self.duration_ms,
        }


class PriceSignalJob:
    """
    Recomputes the price-signal table.

    Args:
        repo:          Repository to read observations from and write to.
        rates:         Rate table for normalization (DEFAULT_RATES if None).
        as_of:         Reference date the windows count back from (today).
        base_currency: Currency of stored signal prices (settings default).
        base_unit:     Unit of stored signal prices (settings default).
    """

    def __init__(
        self,
        repo: Repository,
        *,
        rates: RateTable | None = None,
        as_of: date | None = None,
        base_currency: str | None = None,
        base_unit: str | None = None,
    ) -> None:
        self._repo = repo
        self._rates = rates or DEFAULT_RATES
        self.as_of = as_of or date.today()
        self.base_currency = base_currency or settings.base_currency
        self.base_unit = base_unit or settings.base_unit

    def _linked(self, kind: EntityKind) -> dict[str, SourceEntity]:
        return {
            e.id: e
            for e in self._repo.list_source_entities(kind)
            if e.canonical_id is not None and e.source in SIGNAL_SOURCES
        }

    def _market_of(
        self, market_ref: str, cache: dict[str, CanonicalMarket | None]
    ) -> CanonicalMarket | None:
        if market_ref not in cache:
            market: CanonicalMarket | None = None
            entity = self._repo.get_source_entity(EntityKind.MARKET, market_ref)
            if entity is not None and entity.canonical_id is not None:
                canonical = self._repo.get_canonical(EntityKind.MARKET, entity.canonical_id)
                if isinstance(canonical, CanonicalMarket):
                    market = canonical
            cache[market_ref] = market
        return cache[market_ref]

    def series_rows(self, summary: SignalSummary) -> list[dict[str, Any]]:
        """Normalized, series-keyed price rows; skips are counted on summary."""
        products = self._linked(EntityKind.PRODUCT)
        varieties = self._linked(EntityKind.VARIETY)
        variety_products = {
            v.id: v.product_id
            for v in self._repo.list_canonical(EntityKind.VARIETY)
            if isinstance(v, CanonicalVariety)
        }
        market_type_of = MarketTypeResolver(self._repo)
        market_cache: dict[str, CanonicalMarket | None] = {}
        earliest = self.as_of - timedelta(days=SIGNAL_LOOKBACK_DAYS)

        observations: list[RawObservation] = self._repo.list_observations(
            product_ids=products, variety_ids=varieties
        )
        rows: list[dict[str, Any]] = []
        for obs in observations:
            if obs.source not in SIGNAL_SOURCES or not earliest <= obs.period_date <= self.as_of:
                continue

            product = products.get(obs.source_product_id)
            variety = varieties.get(obs.source_variety_id) if obs.source_variety_id else None
            variety_id = variety.canonical_id if variety else None
            if variety_id is None and product is not None:
                variety_id = product.canonical_variety_id
            product_id = product.canonical_id if product else variety_products.get(variety_id)
            market = self._market_of(obs.market_ref, market_cache)
            if product_id is None or market is None:
                summary.skipped_unlinked += 1
                continue

            result = convert(
                obs.value_avg,
                obs.currency,
                self.base_currency,
                obs.unit,
                self.base_unit,
                self._rates,
            )
            if not result.converted:
                summary.skipped_unconvertible += 1
                continue

            rows.append(
                {
                    "canonical_product_id": product_id,
                    "canonical_variety_id": variety_id,
                    "canonical_country_id": market.country_id,
                    "canonical_market_id": market.id,
                    "market_type_code": market_type_of(obs),
                    "source": obs.source,
                    "period_date": obs.period_date,
                    "price": result.value,
                }
            )
        return rows

    def _signal(self, row: dict[str, Any]) -> PriceSignal:
        current = row["current_price"]
        fields: dict[str, Any] = {}
        for name in SIGNAL_WINDOWS:
            change = percent_change(current, row[f"{name}_ago_price"])
            fields[f"{name}_ago_price"] = row[f"{name}_ago_price"]
            fields[f"{name}_change"] = round(change, 2) if change is not None else None
            fields[f"{name}_status"] = signal_status(change)
        return PriceSignal(
            **{col: row[col] for col in SERIES_KEY},
            as_of=self.as_of,
            currency=self.base_currency,
            unit=self.base_unit,
            current_price=current,
            current_price_date=row["current_price_date"],
            previous_price=row["previous_price"],
            **fields,
        )

    def build_signals(self, summary: SignalSummary | None = None) -> list[PriceSignal]:
        """Compute (without writing) one signal per price series."""
        summary = summary or SignalSummary(as_of=self.as_of)
        frame = series_frame(self.series_rows(summary))
        if frame.is_empty():
            return []
        return [self._signal(row) for row in window_prices(frame, self.as_of).iter_rows(named=True)]

    def run(self) -> SignalSummary:
        """Recompute every signal and replace the stored set."""
        summary = SignalSummary(as_of=self.as_of)
        t0 = time.monotonic()
        log.info("signals_start", as_of=self.as_of.isoformat())

        signals = self.build_signals(summary)
        self._repo.replace_signals(signals)

        summary.series = len(signals)
        summary.changed = sum(1 for s in signals if s.is_changed)
        summary.duration_ms = int((time.monotonic() - t0) * 1000)
        if summary.skipped_unconvertible:
            log.warning("signals_unconvertible_observations", skipped=summary.skipped_unconvertible)
        log.info("signals_complete", **summary.as_dict())
        return summary


def filter_signals(
    signals: list[PriceSignal],
    *,
    status: str = "all",
    limit: int | None = None,
) -> list[PriceSignal]:
    """
    Select stored signals for display.

    status "changed" keeps series that moved over 1M, 3M or 6M; "stable"
    keeps series that moved over none of them. Changed series are ordered
    by priority (number of moved horizons), highest first.
    """
    if status == "changed":
        selected = [s for s in signals if s.priority]
        selected.sort(key=lambda s: -s.priority)
    elif status == "stable":
        selected = [s for s in signals if not s.priority]
    else:
        selected = list(signals)
    return selected[:limit] if limit is not None else selected
