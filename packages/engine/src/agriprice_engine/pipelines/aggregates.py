"""
pipelines/aggregates.py — Weekly / monthly / annual aggregate recomputation.

Orchestrates, per canonical product:
  1. Resolve the product to its linked source products, and to the source
     varieties linked to its canonical varieties
  2. Load their raw observations in date order, optionally scoped to one
     country through market / country links
  3. Tag every observation with its canonical market-type code
       price-stage link -> price-stage vocabulary -> source market's type
  4. Bring each market type onto one currency/unit (that of its earliest
     observation); mismatches are converted when a rate table is given
     and dropped otherwise
  5. Compute WEEKLY, MONTHLY and ANNUAL statistics (transforms/periods.py)
  6. Replace the product's aggregates atomically (delete + insert in one
     repository transaction), retrying the whole product on failure

Usage:
    from agriprice_engine.pipelines.aggregates import PeriodAggregator

    aggregator = PeriodAggregator(repo)
    written = aggregator.recompute_for_product(product_id)
    summary = aggregator.recompute_all()
    print(summary.total_aggregates_written, summary.failed_products)
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import structlog

from agriprice_shared.config import settings
from agriprice_shared.constants import EntityKind, normalize_market_type
from agriprice_shared.models import (
    AggregateRecord,
    CanonicalCountry,
    CanonicalMarket,
    CanonicalPriceStage,
    CanonicalVariety,
    RateTable,
    RawObservation,
)
from agriprice_engine.errors import AggregationPartialFailure
from agriprice_engine.identity import IdentityStore
from agriprice_engine.loaders.base import Repository
from agriprice_engine.sources.base import price_stage_id
from agriprice_engine.transforms.conversion import convert
from agriprice_engine.transforms.periods import build_aggregate_records, observations_frame
from agriprice_engine.utils.retry import with_retry_sync

log = structlog.get_logger(__name__)


class MarketTypeResolver:
    """
    Canonical market-type code of an observation.

    Resolution order: the linked canonical price stage of the source stage,
    then the source's stage vocabulary, then the source market's type.
    Results are cached per (source, stage, market) for the resolver's life.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo
        self._stage_codes = {
            s.id: s.code
            for s in repo.list_canonical(EntityKind.PRICE_STAGE)
            if isinstance(s, CanonicalPriceStage)
        }
        self._cache: dict[tuple[str, str, str], str | None] = {}

    def __call__(self, obs: RawObservation) -> str | None:
        key = (obs.source, obs.price_stage, obs.market_ref)
        if key in self._cache:
            return self._cache[key]

        code: str | None = None
        stage = self._repo.get_source_entity(
            EntityKind.PRICE_STAGE, price_stage_id(obs.source, obs.price_stage)
        )
        if stage is not None and stage.canonical_id is not None:
            code = self._stage_codes.get(stage.canonical_id)
        if code is None:
            code = normalize_market_type(obs.price_stage, obs.source)
        if code is None:
            market = self._repo.get_source_entity(EntityKind.MARKET, obs.market_ref)
            if market is not None:
                code = normalize_market_type(market.market_type, obs.source)

        self._cache[key] = code
        return code


@dataclass
class RecomputeSummary:
    """Outcome of recompute_all()."""

    total_aggregates_written: int = 0
    products_processed: int = 0
    failed_products: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def status(self) -> str:
        if not self.failed_products:
            return "success"
        if self.products_processed:
            return "partial_failure"
        return "failure"

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total_aggregates_written,
            "products_processed": self.products_processed,
            "failed_products": list(self.failed_products),
            "status": self.status,
            "duration_ms": self.duration_ms,
        }


class PeriodAggregator:
    """
    Recomputes price aggregates per canonical product.

    Args:
        repo:           Repository to read observations from and write to.
        country_code:   ISO2 of the only country to aggregate; None = all.
        rates:          Rate table used to reconcile mixed currencies/units
                        inside one market type; None drops mismatches.
        retry_attempts: Attempts per product write (settings default).
        retry_delay:    Initial backoff between attempts, seconds.
    """

    def __init__(
        self,
        repo: Repository,
        *,
        country_code: str | None = None,
        rates: RateTable | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        self._repo = repo
        self.country_code = country_code.upper() if country_code else None
        self._rates = rates
        self._retry_attempts = retry_attempts or settings.aggregate_retry_attempts
        self._retry_delay = (
            settings.aggregate_retry_delay if retry_delay is None else retry_delay
        )
        self._products = IdentityStore(repo, EntityKind.PRODUCT)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _country_of(self, market_ref: str, cache: dict[str, str | None]) -> str | None:
        if market_ref in cache:
            return cache[market_ref]

        iso2: str | None = None
        market = self._repo.get_source_entity(EntityKind.MARKET, market_ref)
        if market is not None:
            iso2 = market.country_code
            if market.canonical_id is not None:
                canonical = self._repo.get_canonical(EntityKind.MARKET, market.canonical_id)
                if isinstance(canonical, CanonicalMarket):
                    country = self._repo.get_canonical(EntityKind.COUNTRY, canonical.country_id)
                    if isinstance(country, CanonicalCountry):
                        iso2 = country.iso2
        else:
            country_entity = self._repo.get_source_entity(EntityKind.COUNTRY, market_ref)
            if country_entity is not None:
                iso2 = country_entity.country_code
                if country_entity.canonical_id is not None:
                    country = self._repo.get_canonical(
                        EntityKind.COUNTRY, country_entity.canonical_id
                    )
                    if isinstance(country, CanonicalCountry):
                        iso2 = country.iso2

        cache[market_ref] = iso2.upper() if iso2 else None
        return cache[market_ref]

    # ------------------------------------------------------------------
    # Observation preparation
    # ------------------------------------------------------------------

    def _prepare_rows(
        self, product_id: str, observations: list[RawObservation]
    ) -> list[dict[str, Any]]:
        market_type_of = MarketTypeResolver(self._repo)
        country_cache: dict[str, str | None] = {}
        native: dict[str, tuple[str, str]] = {}
        rows: list[dict[str, Any]] = []
        dropped_stage = dropped_units = 0

        for obs in observations:
            if self.country_code and self._country_of(obs.market_ref, country_cache) != self.country_code:
                continue

            market_type = market_type_of(obs)
            if market_type is None:
                dropped_stage += 1
                continue

            low, avg, high = obs.value_low, obs.value_avg, obs.value_high
            currency, unit = native.setdefault(market_type, (obs.currency, obs.unit))
            if (obs.currency, obs.unit) != (currency, unit):
                if self._rates is None:
                    dropped_units += 1
                    continue
                results = [
                    convert(v, obs.currency, currency, obs.unit, unit, self._rates)
                    for v in (low, avg, high)
                ]
                if not all(r.converted for r in results):
                    dropped_units += 1
                    continue
                low, avg, high = (r.value for r in results)

            rows.append(
                {
                    "market_type": market_type,
                    "period_date": obs.period_date,
                    "value_low": low,
                    "value_avg": avg,
                    "value_high": high,
                    "currency": currency,
                    "unit": unit,
                }
            )

        if dropped_stage:
            log.warning(
                "observations_unknown_price_stage", product_id=product_id, dropped=dropped_stage
            )
        if dropped_units:
            log.warning(
                "observations_currency_unit_mismatch",
                product_id=product_id,
                dropped=dropped_units,
                rates_available=self._rates is not None,
            )
        return rows

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def linked_sources(self, product_id: str) -> tuple[list[str], list[str]]:
        """Ids of the source products and source varieties feeding a canonical product."""
        source_products = [
            e.id
            for e in self._repo.list_source_entities(EntityKind.PRODUCT, canonical_id=product_id)
        ]
        variety_ids = [
            v.id
            for v in self._repo.list_canonical(EntityKind.VARIETY)
            if isinstance(v, CanonicalVariety) and v.product_id == product_id
        ]
        source_varieties = [
            e.id
            for vid in variety_ids
            for e in self._repo.list_source_entities(EntityKind.VARIETY, canonical_id=vid)
        ]
        return source_products, source_varieties

    def build_records(
        self, product_id: str, *, source: str | None = None
    ) -> list[AggregateRecord] | None:
        """
        Compute (without writing) the aggregate set of a product.

        Args:
            product_id: Canonical product id.
            source:     Only use observations of this source kind.

        Returns None when nothing is linked to the product.
        """
        source_products, source_varieties = self.linked_sources(product_id)
        if not source_products and not source_varieties:
            return None

        observations = self._repo.list_observations(
            product_ids=source_products,
            variety_ids=source_varieties,
            source=source,
        )
        rows = self._prepare_rows(product_id, observations)
        return build_aggregate_records(product_id, observations_frame(rows))

    def _replace(self, product_id: str, records: list[AggregateRecord]) -> int:
        try:
            return self._repo.replace_aggregates(product_id, records)
        except Exception as exc:
            raise AggregationPartialFailure(
                f"Aggregate replace failed for product {product_id}: {exc}",
                product_id=product_id,
            ) from exc

    def recompute_for_product(self, product_id: str) -> int:
        """
        Regenerate every aggregate of one canonical product.

        Returns:
            Number of aggregate records written (0 when nothing is linked).

        Raises:
            NotFound:                  Unknown product id.
            AggregationPartialFailure: The replace did not commit after all
                                       retries; the previous set is intact.
        """
        self._products.get(product_id)
        product_log = log.bind(product_id=product_id)

        records = self.build_records(product_id)
        if records is None:
            product_log.info("recompute_skipped_no_links")
            return 0

        replace = with_retry_sync(
            max_attempts=self._retry_attempts,
            base_delay=self._retry_delay,
            retry_on=AggregationPartialFailure,
        )(self._replace)
        written = replace(product_id, records)
        product_log.info("recompute_complete", aggregates_written=written)
        return written

    def recompute_all(self) -> RecomputeSummary:
        """
        Recompute every canonical product with at least one linked source
        product or source variety; failures are isolated per product.
        """
        summary = RecomputeSummary()
        t0 = time.monotonic()
        product_ids = [
            p.id
            for p in self._repo.list_canonical(EntityKind.PRODUCT)
            if any(self.linked_sources(p.id))
        ]
        log.info("recompute_all_start", products=len(product_ids), country_code=self.country_code)

        for product_id in product_ids:
            try:
                summary.total_aggregates_written += self.recompute_for_product(product_id)
                summary.products_processed += 1
            except Exception as exc:
                summary.failed_products.append(product_id)
                log.error(
                    "recompute_product_failed",
                    product_id=product_id,
                    error=str(exc),
                    exc_info=True,
                )

        summary.duration_ms = int((time.monotonic() - t0) * 1000)
        log.info("recompute_all_complete", **summary.as_dict())
        return summary

    def recompute_for_affected(self, source_product_ids: Iterable[str]) -> int:
        """Recompute the canonical products linked to the given source products."""
        affected: set[str] = set()
        for source_id in source_product_ids:
            entity = self._repo.get_source_entity(EntityKind.PRODUCT, source_id)
            if entity is not None and entity.canonical_id is not None:
                affected.add(entity.canonical_id)

        total = 0
        for product_id in sorted(affected):
            total += self.recompute_for_product(product_id)
        log.info("recompute_affected_complete", products=len(affected), aggregates_written=total)
        return total
