"""
service.py — PriceEngine, the operation surface used by the CLI and the API.

Wraps one Repository and exposes the engine's operations:

    link_entity / unlink_entity / list_unlinked      identity store
    create_canonical / delete_canonical              canonical records
    convert_product_to_variety                       admin restructuring
    run_matching                                     entity matcher
    recompute_aggregates_for_product / _all          period aggregator
    convert / rate_table                             converter
    update_price_signals / list_price_signals        price signals
    ingest / seed                                    deposits and bootstrap
    compare                                          comparison façade

Usage:
    from agriprice_engine.service import PriceEngine

    engine = PriceEngine.from_settings()        # DuckDB at settings.duckdb_path
    engine.ingest(rows)
    engine.run_matching("product")
    engine.recompute_all_aggregates()
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any

import structlog

from agriprice_shared.config import settings
from agriprice_shared.constants import PRICE_STAGES, EntityKind
from agriprice_shared.models import (
    AggregateRecord,
    CanonicalPriceStage,
    CanonicalRecord,
    CanonicalVariety,
    PriceSignal,
    RateTable,
    SourceEntity,
    default_rate_table,
)
from agriprice_engine.comparison import Comparison, ComparisonService, Selection
from agriprice_engine.identity import IdentityStore
from agriprice_engine.loaders.base import Repository
from agriprice_engine.pipelines.aggregates import PeriodAggregator, RecomputeSummary
from agriprice_engine.pipelines.matching import MatchSummary, run_matching
from agriprice_engine.pipelines.signals import PriceSignalJob, SignalSummary, filter_signals
from agriprice_engine.sources import (
    BaseSourceRecord,
    extract_observations,
    extract_source_entities,
    parse_source_records,
)
from agriprice_engine.transforms.conversion import (
    ConversionResult,
    convert,
    export_rate_table,
)

log = structlog.get_logger(__name__)


@dataclass
class IngestResult:
    records: int = 0
    observations_inserted: int = 0
    entities_registered: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "records": self.records,
            "observations_inserted": self.observations_inserted,
            "entities_registered": self.entities_registered,
        }


class PriceEngine:
    """
    Engine operations over one repository.

    Args:
        repo:         Storage backend.
        threshold:    Match threshold (settings.match_threshold by default).
        country_code: Aggregation country scope (settings.aggregate_country_code).
    """

    def __init__(
        self,
        repo: Repository,
        *,
        threshold: float | None = None,
        country_code: str | None = None,
    ) -> None:
        self.repo = repo
        self._threshold = threshold
        self._country_code = country_code or settings.aggregate_country_code

    @classmethod
    def from_settings(cls) -> "PriceEngine":
        from agriprice_shared.db import get_duckdb_connection
        from agriprice_engine.loaders.duckdb_store import DuckDBRepository

        repo = DuckDBRepository(get_duckdb_connection())
        repo.init_schema()
        return cls(repo)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def identity(self, kind: EntityKind | str) -> IdentityStore:
        return IdentityStore(self.repo, kind)

    def link_entity(
        self, kind: EntityKind | str, source_id: str, canonical_id: str | None
    ) -> SourceEntity:
        return self.identity(kind).link(source_id, canonical_id)

    def unlink_entity(self, kind: EntityKind | str, source_id: str) -> SourceEntity:
        return self.identity(kind).unlink(source_id)

    def list_unlinked(self, kind: EntityKind | str, **filters: Any) -> list[SourceEntity]:
        return self.identity(kind).find_unlinked(**filters)

    def create_canonical(self, kind: EntityKind | str, record: CanonicalRecord) -> CanonicalRecord:
        return self.identity(kind).create(record)

    def delete_canonical(self, kind: EntityKind | str, canonical_id: str) -> None:
        self.identity(kind).delete(canonical_id)

    def convert_product_to_variety(self, product_id: str, into_product_id: str) -> CanonicalVariety:
        variety = self.identity(EntityKind.PRODUCT).convert_to_variety(product_id, into_product_id)
        self.recompute_aggregates_for_product(into_product_id)
        return variety

    # ------------------------------------------------------------------
    # Matching / aggregation
    # ------------------------------------------------------------------

    def run_matching(self, kind: EntityKind | str) -> MatchSummary:
        return run_matching(self.repo, kind, threshold=self._threshold)

    def aggregator(self) -> PeriodAggregator:
        return PeriodAggregator(
            self.repo, country_code=self._country_code, rates=self.rates()
        )

    def recompute_aggregates_for_product(self, product_id: str) -> int:
        return self.aggregator().recompute_for_product(product_id)

    def recompute_all_aggregates(self) -> RecomputeSummary:
        return self.aggregator().recompute_all()

    def list_aggregates(self, **filters: Any) -> list[AggregateRecord]:
        return self.repo.list_aggregates(**filters)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def rates(self) -> RateTable:
        stored = self.repo.load_rate_table(
            base_currency=settings.base_currency, base_unit=settings.base_unit
        )
        return stored or default_rate_table()

    def convert(
        self,
        value: float,
        from_currency: str,
        to_currency: str,
        from_unit: str,
        to_unit: str,
    ) -> ConversionResult:
        return convert(value, from_currency, to_currency, from_unit, to_unit, self.rates())

    def rate_table(self) -> dict[str, Any]:
        return export_rate_table(self.rates())

    # ------------------------------------------------------------------
    # Price signals
    # ------------------------------------------------------------------

    def update_price_signals(self, as_of: date | None = None) -> SignalSummary:
        return PriceSignalJob(
            self.repo,
            rates=self.rates(),
            as_of=as_of,
            base_currency=settings.base_currency,
            base_unit=settings.base_unit,
        ).run()

    def list_price_signals(
        self,
        *,
        status: str = "all",
        source: str | None = None,
        product_id: str | None = None,
        limit: int | None = None,
    ) -> list[PriceSignal]:
        signals = self.repo.list_signals(source=source, product_id=product_id)
        return filter_signals(signals, status=status, limit=limit)

    # ------------------------------------------------------------------
    # Deposits and bootstrap
    # ------------------------------------------------------------------

    def ingest(self, records: Iterable[BaseSourceRecord | dict[str, Any]]) -> IngestResult:
        """
        Deposit source records: register unseen source entities and append
        their observations. Existing source entities (and their links) are
        left untouched, so re-ingesting a file is a no-op.
        """
        items = list(records)
        parsed = [r for r in items if isinstance(r, BaseSourceRecord)]
        parsed += parse_source_records(r for r in items if not isinstance(r, BaseSourceRecord))
        result = IngestResult(records=len(parsed))

        with self.repo.transaction():
            for entity in extract_source_entities(parsed):
                if self.repo.get_source_entity(entity.kind, entity.id) is None:
                    self.repo.save_source_entity(entity)
                    result.entities_registered += 1
            result.observations_inserted = self.repo.add_observations(
                extract_observations(parsed)
            )

        log.info("ingest_complete", **result.as_dict())
        return result

    def seed(self) -> dict[str, int]:
        """Create the canonical price stages and store the default rate table."""
        stages = 0
        with self.repo.transaction():
            for code, info in PRICE_STAGES.items():
                if self.repo.get_canonical(EntityKind.PRICE_STAGE, code) is not None:
                    continue
                self.repo.add_canonical(
                    EntityKind.PRICE_STAGE,
                    CanonicalPriceStage(id=code, code=code, **info),
                )
                stages += 1
            if self.repo.load_rate_table() is None:
                self.repo.save_rate_table(default_rate_table())

        log.info("seed_complete", price_stages=stages)
        return {"price_stages": stages}

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare(
        self,
        product_id: str,
        selections: list[Selection | dict[str, str]],
        **options: Any,
    ) -> Comparison:
        parsed = [s if isinstance(s, Selection) else Selection(**s) for s in selections]
        return ComparisonService(
            self.repo, self.rates(), stored_country_code=self._country_code
        ).compare(product_id, parsed, **options)
