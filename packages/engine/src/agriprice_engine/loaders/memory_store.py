"""
loaders/memory_store.py — Dict-backed Repository.

Used by the test suite and for scratch runs. A transaction snapshots the
whole state on entry and restores it if the block raises, which gives the
same all-or-nothing behaviour as the DuckDB backend.

Usage:
    from agriprice_engine.loaders.memory_store import InMemoryRepository

    repo = InMemoryRepository()
    repo.add_canonical(EntityKind.PRODUCT, CanonicalProduct(slug="apple", name_en="Apple"))
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

import structlog

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import (
    AggregateRecord,
    CanonicalRecord,
    CurrencyRate,
    PriceSignal,
    RateTable,
    RawObservation,
    SourceEntity,
    UnitRate,
)
from agriprice_engine.loaders.base import (
    ObservationKey,
    Repository,
    check_unique_keys,
    observation_key,
    observation_sort_key,
    sorted_aggregates,
    sorted_signals,
)

log = structlog.get_logger(__name__)


@dataclass
class _State:
    canonical: dict[EntityKind, dict[str, CanonicalRecord]] = field(
        default_factory=lambda: {kind: {} for kind in EntityKind}
    )
    source_entities: dict[EntityKind, dict[str, SourceEntity]] = field(
        default_factory=lambda: {kind: {} for kind in EntityKind}
    )
    observations: dict[ObservationKey, RawObservation] = field(default_factory=dict)
    aggregates: dict[str, list[AggregateRecord]] = field(default_factory=dict)
    currencies: dict[str, CurrencyRate] = field(default_factory=dict)
    units: dict[str, UnitRate] = field(default_factory=dict)
    signals: list[PriceSignal] = field(default_factory=list)


class InMemoryRepository(Repository):
    def __init__(self) -> None:
        self._state = _State()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = copy.deepcopy(self._state)
        self._depth = 1
        try:
            yield
        except BaseException:
            self._state = snapshot
            log.debug("memory_transaction_rolled_back")
            raise
        finally:
            self._depth = 0

    # ------------------------------------------------------------------
    # Canonical records
    # ------------------------------------------------------------------

    def get_canonical(self, kind: EntityKind, canonical_id: str) -> CanonicalRecord | None:
        record = self._state.canonical[kind].get(canonical_id)
        return record.model_copy() if record is not None else None

    def list_canonical(self, kind: EntityKind) -> list[CanonicalRecord]:
        records = self._state.canonical[kind].values()
        return [r.model_copy() for r in sorted(records, key=lambda r: r.id)]

    def add_canonical(self, kind: EntityKind, record: CanonicalRecord) -> CanonicalRecord:
        self._state.canonical[kind][record.id] = record.model_copy()
        return record

    def delete_canonical(self, kind: EntityKind, canonical_id: str) -> None:
        self._state.canonical[kind].pop(canonical_id, None)

    # ------------------------------------------------------------------
    # Source entities
    # ------------------------------------------------------------------

    def get_source_entity(self, kind: EntityKind, source_id: str) -> SourceEntity | None:
        entity = self._state.source_entities[kind].get(source_id)
        return entity.model_copy() if entity is not None else None

    def list_source_entities(
        self,
        kind: EntityKind,
        *,
        source: str | None = None,
        canonical_id: str | None = None,
        parent_id: str | None = None,
    ) -> list[SourceEntity]:
        entities = [
            e
            for e in self._state.source_entities[kind].values()
            if (source is None or e.source == source)
            and (canonical_id is None or e.canonical_id == canonical_id)
            and (parent_id is None or e.parent_id == parent_id)
        ]
        entities.sort(key=lambda e: (e.source, e.id))
        return [e.model_copy() for e in entities]

    def save_source_entity(self, entity: SourceEntity) -> SourceEntity:
        self._state.source_entities[entity.kind][entity.id] = entity.model_copy()
        return entity

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def add_observations(self, observations: Iterable[RawObservation]) -> int:
        inserted = 0
        for obs in observations:
            key = observation_key(obs)
            if key in self._state.observations:
                continue
            self._state.observations[key] = obs
            inserted += 1
        return inserted

    def list_observations(
        self,
        *,
        product_ids: Iterable[str] = (),
        variety_ids: Iterable[str] = (),
        source: str | None = None,
    ) -> list[RawObservation]:
        products = set(product_ids)
        varieties = set(variety_ids)
        matches = [
            obs
            for obs in self._state.observations.values()
            if (obs.source_product_id in products or obs.source_variety_id in varieties)
            and (source is None or obs.source == source)
        ]
        return sorted(matches, key=observation_sort_key)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def list_aggregates(
        self,
        *,
        product_id: str | None = None,
        period_type: str | None = None,
        market_type: str | None = None,
        year_from: int | None = None,
        year_to: int | None = None,
    ) -> list[AggregateRecord]:
        if product_id is not None:
            pool = list(self._state.aggregates.get(product_id, []))
        else:
            pool = [r for records in self._state.aggregates.values() for r in records]
        return sorted_aggregates(
            r
            for r in pool
            if (period_type is None or r.period_type == period_type)
            and (market_type is None or r.market_type_code == market_type)
            and (year_from is None or r.year >= year_from)
            and (year_to is None or r.year <= year_to)
        )

    def replace_aggregates(self, product_id: str, records: list[AggregateRecord]) -> int:
        with self.transaction():
            self._state.aggregates.pop(product_id, None)
            check_unique_keys(records)
            for record in records:
                if record.canonical_product_id != product_id:
                    raise ValueError(
                        f"Aggregate for {record.canonical_product_id} written under {product_id}"
                    )
            if records:
                self._state.aggregates[product_id] = sorted_aggregates(records)
        return len(records)

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    def load_rate_table(self, *, base_currency: str = "USD", base_unit: str = "kg") -> RateTable | None:
        if not self._state.currencies and not self._state.units:
            return None
        return RateTable.from_rows(
            list(self._state.currencies.values()),
            list(self._state.units.values()),
            base_currency=base_currency,
            base_unit=base_unit,
        )

    def save_rate_table(self, table: RateTable) -> None:
        self._state.currencies.update(table.currencies)
        self._state.units.update(table.units)

    # ------------------------------------------------------------------
    # Price signals
    # ------------------------------------------------------------------

    def list_signals(
        self,
        *,
        source: str | None = None,
        product_id: str | None = None,
    ) -> list[PriceSignal]:
        return [
            s.model_copy()
            for s in self._state.signals
            if (source is None or s.source == source)
            and (product_id is None or s.canonical_product_id == product_id)
        ]

    def replace_signals(self, signals: list[PriceSignal]) -> int:
        with self.transaction():
            self._state.signals = []
            check_unique_keys(signals)
            self._state.signals = sorted_signals(s.model_copy() for s in signals)
        return len(signals)
